from civicmap.hooks import HookManager, HookName


def test_hooks_run_in_registration_order_and_merge_patches() -> None:
    calls: list[str] = []
    hooks = HookManager()
    hooks.register(HookName.AFTER_FETCH, lambda ctx, env: calls.append("first") or {"tag": "first"})
    hooks.register(HookName.AFTER_FETCH, lambda ctx, env: calls.append(env["tag"]) or {"extra": 1})

    result = hooks.emit(HookName.AFTER_FETCH, {"generation": 0}, {"issues": 3})

    assert calls == ["first", "first"]
    assert result == {"issues": 3, "tag": "first", "extra": 1}


def test_failing_hook_routes_to_error_hook() -> None:
    errors: list[dict] = []
    hooks = HookManager()

    def _broken(ctx, env):
        raise RuntimeError("hook exploded")

    hooks.register(HookName.BEFORE_CYCLE, _broken)
    hooks.register(HookName.BEFORE_CYCLE, lambda ctx, env: {"ran": True})
    hooks.register(HookName.ON_ERROR, lambda ctx, env: errors.append(ctx) or None)

    result = hooks.emit(HookName.BEFORE_CYCLE, {"generation": 2}, {})

    assert result == {"ran": True}
    assert errors[0]["generation"] == 2
    assert str(errors[0]["exception"]) == "hook exploded"


def test_failing_error_hook_does_not_recurse() -> None:
    hooks = HookManager()

    def _broken(ctx, env):
        raise RuntimeError("error hook exploded")

    hooks.register(HookName.ON_ERROR, _broken)

    hooks.emit_error(RuntimeError("boom"), {})
    assert hooks.emit(HookName.ON_ERROR, {}, {}) == {}
