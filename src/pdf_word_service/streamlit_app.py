import logging
import os

import streamlit as st

from pdf_word_service.frontend import ConversionSession, NoticeKind, SessionState, UploadedFile, make_converter
from pdf_word_service.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

UI_MODE = os.getenv("DOC_SERVICE_UI_MODE", "remote").strip().lower()
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _session() -> ConversionSession:
    if "session" not in st.session_state:
        st.session_state["session"] = ConversionSession(make_converter(UI_MODE))
    return st.session_state["session"]


def _reset_state() -> None:
    _session().reset()
    st.session_state.pop("document", None)
    # Bump the uploader key to clear any previously uploaded file widget state
    st.session_state["upload_key"] = st.session_state.get("upload_key", 0) + 1


def _show_notice(session: ConversionSession) -> None:
    notice = session.notice
    if notice is None:
        return
    if notice.kind == NoticeKind.SUCCESS:
        st.success(notice.message)
    elif notice.kind == NoticeKind.QUOTA:
        st.warning(notice.message)
    else:
        st.error(notice.message)


def main() -> None:
    st.set_page_config(page_title="PDF to Word Converter", page_icon="📄", layout="centered")
    st.title("📄 PDF to Word Converter")
    st.caption("Conversion runs in your session" if UI_MODE == "local" else "Conversion runs on the server")

    session = _session()

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    # Use a dynamic key so that restarting bumps the key and clears the previous upload
    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        f"Upload a PDF (max {session.converter.max_mb} MB)",
        type=["pdf"],
        key=f"uploader-{st.session_state['upload_key']}",
    )

    current = None
    if uploaded is not None:
        current = UploadedFile(uploaded.name, uploaded.type or "", uploaded.getvalue())
    session.sync_selection(current)
    if session.state != SessionState.READY:
        st.session_state.pop("document", None)

    if session.state == SessionState.FILE_SELECTED and session.upload is not None:
        st.write(f"Name: {session.upload.name}")
        st.write(f"Size: {session.upload.size / 1024:.2f} KB")
        if st.button("Convert to Word", type="primary"):
            bar = st.progress(0.0, text="Reading PDF file...")

            def _on_page(number: int, total: int) -> None:
                bar.progress(number / total, text=f"Processing page {number} of {total}...")

            with st.spinner("Converting..."):
                outcome = session.convert(progress=_on_page)
            bar.empty()
            if outcome.success:
                try:
                    st.session_state["document"] = session.fetch_document()
                except Exception as e:
                    logger.warning("Download failed: %s", e)

    _show_notice(session)

    if session.state == SessionState.READY and "document" in st.session_state:
        data, name = st.session_state["document"]
        st.download_button(
            label="Download Word File",
            data=data,
            file_name=name,
            mime=DOCX_MIME,
            on_click=_reset_state,
        )


if __name__ == "__main__":
    main()
