"""Flask backend for the children's story generator."""

import io
import logging
import os
import time

from dotenv import load_dotenv
from flask import Flask, jsonify, request, send_file, send_from_directory

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    format="[%(asctime)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    level=logging.INFO,
)
log = logging.getLogger("story")

load_dotenv()

import llm_config
from errors import GenerationError, MalformedResponseError, ProviderError, ValidationError
from llm_bridge import describe, make_client
from llm_trace import new_request_id
from pdf_export import PDF_FILENAME, export_story_pdf
from story_html import render_story_html
from story_models import StoryRequest
from story_pipeline import assemble_story, continue_story, generate_simple_story

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
STATIC_DIR = os.path.join(BASE_DIR, "static")
_LLM_CONFIG_PATH = llm_config.CONFIG_PATH

STORY_FIELDS = ("headline", "subheadline", "mainText", "style")
CONTINUE_FIELDS = ("previousPart", "choiceMade")
STORY_FORMATS = ("text", "sections", "simple")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _json_body() -> dict:
    body = request.get_json(force=True, silent=True)
    return body if isinstance(body, dict) else {}


def _require_fields(body: dict, fields: tuple) -> None:
    """Raise ValidationError for the first missing or blank field."""
    for name in fields:
        value = body.get(name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(name)


def _current_config():
    return llm_config.load_config(path=_LLM_CONFIG_PATH)


def _generation_failed(e: GenerationError):
    """502 when the provider failed or answered garbage, 500 for anything else."""
    status = 502 if isinstance(e.cause, (ProviderError, MalformedResponseError)) else 500
    log.warning("generation failed (%d) — %s", status, e)
    return jsonify({"ok": False, "error": "generation failed", "details": e.to_dict()}), status


def _optional_str(body: dict, name: str, default: str | None = None) -> str | None:
    """Stripped string value of an optional field; ValidationError if not a string."""
    value = body.get(name)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise ValidationError(name, f"{name} must be a string")
    return value.strip() or default


# ---------------------------------------------------------------------------
# Flask App
# ---------------------------------------------------------------------------
app = Flask(__name__, static_folder=STATIC_DIR, static_url_path="")


@app.after_request
def _cors(resp):
    # The form page may be hosted on a different origin than the API.
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Accept"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return resp


@app.route("/")
def index():
    return send_from_directory(STATIC_DIR, "index.html")


@app.route("/story")
def story_page():
    return send_from_directory(STATIC_DIR, "story.html")


@app.route("/generate-story", methods=["POST"])
def api_generate_story():
    """Validate the form, run the pipeline, return HTML text or a section map."""
    t_start = time.time()
    body = _json_body()
    try:
        _require_fields(body, STORY_FIELDS)
        fmt = _optional_str(body, "format", "text").lower()
    except ValidationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    if fmt not in STORY_FORMATS:
        return jsonify({"ok": False, "error": f"unknown format '{fmt}'"}), 400

    story_request = StoryRequest.from_payload(body)
    provider_cfg, settings = _current_config()
    request_id = new_request_id()
    log.info("/generate-story START id=%s style=%s format=%s provider=%s",
             request_id, story_request.style, fmt, provider_cfg.provider)

    client = make_client(provider_cfg)
    try:
        if fmt == "simple":
            story = generate_simple_story(story_request, client, settings, request_id=request_id)
        else:
            story = assemble_story(story_request, client, settings, request_id=request_id)
    except GenerationError as e:
        return _generation_failed(e)

    log.info("/generate-story DONE  id=%s nodes=%d total=%.1fs",
             request_id, len(story.nodes), time.time() - t_start)

    if fmt == "sections":
        return jsonify({"ok": True, **story.to_sections()})
    text = story.to_text()
    return jsonify({
        "ok": True,
        "title": story.title,
        "subtitle": story.subtitle,
        "story": render_story_html(text),
        "text": text,
    })


@app.route("/continue-story", methods=["POST"])
def api_continue_story():
    """Interactive variant: generate the page following a choice."""
    body = _json_body()
    try:
        _require_fields(body, CONTINUE_FIELDS)
    except ValidationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    provider_cfg, settings = _current_config()
    log.info("/continue-story START choice=%s", body["choiceMade"][:40])
    try:
        text, choices = continue_story(
            body["previousPart"], body["choiceMade"], make_client(provider_cfg), settings,
        )
    except GenerationError as e:
        return _generation_failed(e)
    return jsonify({"ok": True, "story": text, "choices": choices})


@app.route("/generate-pdf", methods=["POST"])
def api_generate_pdf():
    body = _json_body()
    try:
        _require_fields(body, ("story",))
    except ValidationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    try:
        pdf = export_story_pdf(body["story"], title=body.get("title") or None,
                               subtitle=body.get("subtitle") or "")
    except Exception as e:
        log.exception("/generate-pdf FAILED")
        return jsonify({"ok": False, "error": "pdf generation failed", "details": {"error": str(e)}}), 500

    return send_file(io.BytesIO(pdf), mimetype="application/pdf",
                     as_attachment=True, download_name=PDF_FILENAME)


# ---------------------------------------------------------------------------
# Status / LLM Config API (provider / model switcher)
# ---------------------------------------------------------------------------

@app.route("/api/status")
def api_status():
    provider_cfg, settings = _current_config()
    return jsonify({"ok": True, **describe(provider_cfg), "parallel": settings.parallel})


@app.route("/api/config")
def api_config_get():
    """Return sanitized LLM config (no API keys exposed)."""
    provider_cfg, settings = _current_config()
    return jsonify({
        "ok": True,
        **describe(provider_cfg),
        "providers": list(llm_config.PROVIDERS),
        "pipeline": {
            "max_attempts": settings.max_attempts,
            "backoff_base": settings.backoff_base,
            "parallel": settings.parallel,
            "inter_call_delay": settings.inter_call_delay,
        },
    })


@app.route("/api/config", methods=["POST"])
def api_config_set():
    """Update provider and/or model. Writes to llm_config.json."""
    data = _json_body()
    try:
        provider = _optional_str(data, "provider")
        model = _optional_str(data, "model")
    except ValidationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    cfg = dict(llm_config.read_config_file(_LLM_CONFIG_PATH))
    if provider is not None:
        provider = provider.lower()
        if provider not in llm_config.PROVIDERS:
            return jsonify({"ok": False, "error": f"unknown provider '{provider}'"}), 400
        cfg["provider"] = provider

    if model:
        target = provider or cfg.get("provider") or llm_config.DEFAULT_PROVIDER
        section = dict(cfg.get(target, {}))
        section["model"] = model
        cfg[target] = section

    llm_config.write_config_file(cfg, _LLM_CONFIG_PATH)
    log.info("api_config_set: updated — provider=%s", cfg.get("provider"))
    return jsonify({"ok": True})


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _log_startup(port: int):
    provider_cfg, settings = _current_config()
    log.info("Server starting on port %d", port)
    log.info("Provider: %s model=%s parallel=%s", provider_cfg.provider, provider_cfg.model, settings.parallel)
    if provider_cfg.has_credential():
        log.info("API credential configured: yes")
    else:
        log.warning("API credential configured: NO — generation requests will fail until %s is set",
                    llm_config.KEY_ENV.get(provider_cfg.provider, "a key"))


if __name__ == "__main__":
    port = llm_config.get_port()
    _log_startup(port)
    app.run(host="0.0.0.0", port=port)
