import streamlit as st


PREFIX = "ui"
_STORE = None


def use_store(mapping):
    """Back the slices with ``mapping`` instead of ``st.session_state``; None restores it."""
    global _STORE
    _STORE = mapping


def _state():
    return st.session_state if _STORE is None else _STORE


def _key(slice_name):
    return f"{PREFIX}.{slice_name}"


def get_slice(slice_name):
    state = _state()
    key = _key(slice_name)
    if key not in state:
        state[key] = {}
    return state[key]


def get_value(slice_name, name, default=None):
    return get_slice(slice_name).get(name, default)


def get_bool(slice_name, name, default=False):
    value = get_value(slice_name, name, default)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def get_int(slice_name, name, default=0):
    value = get_value(slice_name, name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default or 0)


def get_str(slice_name, name, default=""):
    value = get_value(slice_name, name, default)
    if value is None:
        return str(default or "")
    return str(value)


def set_value(slice_name, name, value):
    get_slice(slice_name)[name] = value


def update_slice(slice_name, values):
    get_slice(slice_name).update(values)


def clear_slice(slice_name):
    state = _state()
    key = _key(slice_name)
    if key in state:
        del state[key]


def restore_slice(slice_name, local_store):
    """Load a persisted slice (theme, sidebar) unless this session already has one."""
    state = _state()
    key = _key(slice_name)
    if key not in state:
        saved = local_store.load(slice_name)
        state[key] = dict(saved) if isinstance(saved, dict) else {}
    return state[key]


def persist_slice(slice_name, local_store):
    local_store.save(slice_name, dict(get_slice(slice_name)))
