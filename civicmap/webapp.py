"""HTTP adapter exposing one viewport session to a map client."""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from civicmap.commands.common import load_config_from_env
from civicmap.config import CivicMapConfig
from civicmap.controller import ViewportController
from civicmap.models import Category, GeoPoint, Viewport
from civicmap.render import CATEGORY_STYLES, HEATMAP_GRADIENT
from civicmap.storage.base import DocumentStore


class LocationFix(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    accuracy: float | None = None
    observed_at: datetime | None = None


class LocationUnavailable(BaseModel):
    reason: str = "unavailable"


class CategorySelection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    categories: list[Category]


def _session_payload(controller: ViewportController) -> dict[str, Any]:
    acquisition = controller.acquisition
    return {
        "state": controller.state.value,
        "generation": acquisition.generation,
        "location_resolved": controller.location_resolved,
        "working_set": len(acquisition.reports),
    }


def create_app(
    config: CivicMapConfig,
    store: DocumentStore | None = None,
    controller: ViewportController | None = None,
) -> FastAPI:
    app = FastAPI(title="civicmap")
    session = controller or ViewportController(config, store)
    if controller is None:
        session.start()
    app.state.controller = session

    @app.get("/api/health", response_class=JSONResponse)
    def api_health() -> JSONResponse:
        return JSONResponse({"status": "ok", **_session_payload(session)})

    @app.get("/api/map-config", response_class=JSONResponse)
    def api_map_config() -> JSONResponse:
        api_key = os.environ.get(config.render.map_api_key_env)
        if not api_key:
            raise HTTPException(status_code=503, detail=f"Map API key not configured ({config.render.map_api_key_env})")
        return JSONResponse(
            {
                "api_key": api_key,
                "default_center": config.viewport.default_center.model_dump(),
                "default_zoom": config.fetch.default_zoom,
                "heatmap_zoom_threshold": config.render.heatmap_zoom_threshold,
                "heatmap": {
                    "radius": config.render.heatmap_radius,
                    "opacity": config.render.heatmap_opacity,
                    "max_intensity": config.render.heatmap_max_intensity,
                    "dissipating": True,
                    "gradient": HEATMAP_GRADIENT,
                },
                "categories": {category.value: style for category, style in CATEGORY_STYLES.items()},
            }
        )

    @app.post("/api/viewport/settle", response_class=JSONResponse)
    def api_viewport_settle(viewport: Viewport) -> JSONResponse:
        session.on_settle(viewport)
        return JSONResponse(_session_payload(session), status_code=202)

    @app.post("/api/viewport/center", response_class=JSONResponse)
    def api_viewport_center(center: GeoPoint) -> JSONResponse:
        session.on_center_changed(center)
        return JSONResponse(_session_payload(session))

    @app.post("/api/viewport/resize", response_class=JSONResponse)
    def api_viewport_resize(viewport: Viewport) -> JSONResponse:
        session.on_resize(viewport)
        return JSONResponse(_session_payload(session), status_code=202)

    @app.post("/api/location", response_class=JSONResponse)
    def api_location(fix: LocationFix) -> JSONResponse:
        triggered = session.on_location_fix(GeoPoint(lat=fix.lat, lng=fix.lng), observed_at=fix.observed_at)
        return JSONResponse({"triggered": triggered, **_session_payload(session)})

    @app.post("/api/location/unavailable", response_class=JSONResponse)
    def api_location_unavailable(payload: LocationUnavailable) -> JSONResponse:
        session.on_location_unavailable(payload.reason)
        return JSONResponse(_session_payload(session))

    @app.put("/api/categories", response_class=JSONResponse)
    def api_categories(selection: CategorySelection) -> JSONResponse:
        session.set_categories(selection.categories)
        return JSONResponse({"categories": sorted(category.value for category in session.categories)})

    @app.post("/api/fetch", response_class=JSONResponse)
    def api_fetch() -> JSONResponse:
        report = session.fetch_now()
        if report is None:
            raise HTTPException(status_code=409, detail="Fetch cycle in flight or viewport not ready")
        return JSONResponse(report.model_dump(mode="json"))

    @app.get("/api/view", response_class=JSONResponse)
    def api_view() -> JSONResponse:
        return JSONResponse({"session": _session_payload(session), "view": session.render_view().model_dump(mode="json")})

    return app


def create_app_from_env() -> FastAPI:
    return create_app(load_config_from_env())
