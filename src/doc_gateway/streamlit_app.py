import os

import requests
import streamlit as st

API_BASE = os.getenv("DOC_GATEWAY_API_BASE", os.getenv("API_BASE", "http://localhost:8080")).rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("DOC_GATEWAY_UI_TIMEOUT", "120"))


def _reset_state() -> None:
    for key in ["link", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the editor key to clear the previous content
    st.session_state["editor_key"] = st.session_state.get("editor_key", 0) + 1


def _export(input_format: str, output_format: str, content: str) -> str | None:
    payload = {"input_format": input_format, "output_format": output_format, "content": content}
    try:
        resp = requests.post(f"{API_BASE}/export", json=payload, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    try:
        data = resp.json()
    except ValueError:
        data = {}
    if resp.status_code != 200:
        message = data.get("error") if isinstance(data, dict) else None
        st.session_state["error"] = f"Export failed: {resp.status_code} {message or resp.text}"
        return None
    return str(data.get("link"))


def _backend_status() -> str:
    try:
        resp = requests.get(f"{API_BASE}/healthz/backend", timeout=10)
    except requests.RequestException as e:
        return f"unreachable ({e})"
    return "ok" if resp.status_code == 200 else f"error {resp.status_code}"


def main() -> None:
    st.set_page_config(page_title="Document Export Gateway", page_icon="📄", layout="centered")
    st.title("📄 Document Export Gateway")
    st.caption(f"API base: {API_BASE} · backend: {_backend_status()}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "editor_key" not in st.session_state:
        st.session_state["editor_key"] = 0

    col1, col2 = st.columns([1, 1])
    with col1:
        input_format = st.selectbox("Input format", ["markdown", "html"])
    with col2:
        output_format = st.selectbox("Output format", ["pdf", "docx"])
    content = st.text_area("Content", height=300, key=f"editor-{st.session_state['editor_key']}")

    if st.button("Export", type="primary", disabled=not content):
        st.session_state.pop("error", None)
        with st.spinner("Converting..."):
            link = _export(input_format, output_format, content)
        if link:
            st.session_state["link"] = link

    if link := st.session_state.get("link"):
        st.success("Export ready! Links expire after a few minutes.")
        st.markdown(f"[Download]({link})")
        st.code(link)

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
