from setuptools import find_packages, setup

setup(
    name="civicmap",
    version="0.1.0",
    description="Incremental geohash-partitioned acquisition and dedup of civic issue reports for map viewports",
    packages=find_packages(include=["civicmap", "civicmap.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2",
        "PyYAML",
        "python-geohash",
        "fastapi",
        "uvicorn",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
    entry_points={
        "console_scripts": ["civicmap=civicmap.cli:main"],
    },
)
