"""
Quart application for the newsroom console backend.
Serves the enrichment callables and the JSON API over drafts and settings.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from quart import Quart, current_app, jsonify
from quart_cors import cors

from core.schemas import (
    AnalysisContextsRequest,
    AnalysisRequest,
    ContextsRequest,
    CoverageRequest,
    EventContextsRequest,
    ExplainerRequest,
    ImageBlockRequest,
    SourcePreviewRequest,
    TimelineRequest,
)
from console.callables import CallableError, api_endpoint, callable_endpoint
from ingestion.base import FeedError
from ingestion.rss import RSSNewsSearch
from ingestion.serper import SerperNewsSearch
from ingestion.source_factory import create_coverage_search, create_rss_search
from processing import analysis
from processing.coverage import fetch_event_coverage
from processing.normalizer import normalize_for_read, sonar_event_to_legacy
from processing.ranker import rank
from processing.timeline import TimelineGenerator
from services.config import Config, LLMConfig
from services.database import DocumentStore
from services.drafts import DraftRepository
from services.llm import ChatCompletionClient
from services.settings import DocumentSettingsProvider, SettingsProvider

logger = logging.getLogger(__name__)


@dataclass
class ConsoleServices:
    """Collaborators shared by the request handlers."""
    store: DocumentStore
    drafts: DraftRepository
    settings: SettingsProvider
    sonar: ChatCompletionClient
    openai: ChatCompletionClient
    rss: RSSNewsSearch
    coverage: Optional[SerperNewsSearch]


def _client(llm_config: LLMConfig) -> ChatCompletionClient:
    return ChatCompletionClient(
        base_url=llm_config.base_url,
        model=llm_config.model,
        api_key=llm_config.api_key,
        timeout=llm_config.timeout,
    )


def build_services(config: Config, **overrides: Any) -> ConsoleServices:
    """Wire collaborators from config; keyword overrides replace any of them."""
    store = overrides.get("store") or DocumentStore(config.DATABASE_PATH)
    parts: Dict[str, Any] = {
        "store": store,
        "drafts": DraftRepository(store),
        "settings": DocumentSettingsProvider(store, ttl_seconds=config.SETTINGS_TTL_SECONDS),
        "sonar": _client(config.sonar),
        "openai": _client(config.openai),
        "rss": create_rss_search(config.search),
        "coverage": create_coverage_search(config.search),
    }
    parts.update(overrides)
    return ConsoleServices(**parts)


def services() -> ConsoleServices:
    return current_app.extensions["console"]


def _draft_view(draft: Dict[str, Any]) -> Dict[str, Any]:
    return {**draft, "timeline": normalize_for_read(draft.get("timeline"))}


def create_app(config: Config, **overrides: Any) -> Quart:
    app = Quart(__name__)
    app = cors(app)
    app.config["ADMIN_TOKEN"] = config.ADMIN_TOKEN
    app.extensions["console"] = build_services(config, **overrides)

    if not config.ADMIN_TOKEN:
        logger.warning("ADMIN_TOKEN not set, console API is open")

    @app.before_serving
    async def startup():
        """Initialize document tables on startup."""
        await services().store.init_tables()
        logger.info("Console application started, document store initialized")

    @app.route("/health")
    async def health():
        return jsonify({"status": "ok"})

    # ==================== Callables ====================

    @app.route("/callable/fetchSourcePreview", methods=["POST"])
    @callable_endpoint
    async def fetch_source_preview(data):
        req = SourcePreviewRequest.model_validate(data)
        try:
            candidates = await services().rss.search(req.event_text)
        except FeedError as e:
            logger.error(f"Source preview feed failed for '{req.event_text}': {e}")
            raise CallableError("INTERNAL", "Failed to fetch source preview")
        return rank(req.event_text, req.description or "", candidates).to_dict()

    @app.route("/callable/fetchSonarTimeline", methods=["POST"])
    @callable_endpoint
    async def fetch_sonar_timeline(data):
        req = TimelineRequest.model_validate(data)
        svc = services()
        if not svc.sonar.api_key:
            logger.error("Missing PERPLEXITY_API_KEY")
            raise CallableError("FAILED_PRECONDITION", "Timeline backend is not configured")

        settings = await svc.settings.get_settings()
        events = await TimelineGenerator(svc.sonar).generate_timeline(
            req.title,
            req.overview,
            settings.sonar.timeline_system_prompt,
            settings.sonar.timeline_user_prompt_template,
            model=settings.sonar.model,
        )
        return {"events": events}

    @app.route("/callable/fetchEventCoverage", methods=["POST"])
    @callable_endpoint
    async def fetch_coverage(data):
        req = CoverageRequest.model_validate(data)
        settings = await services().settings.get_settings()
        sources = await fetch_event_coverage(services().coverage, req, settings.serper.prompt)
        return {"sources": sources}

    @app.route("/callable/generateTimeline", methods=["POST"])
    @callable_endpoint
    async def generate_timeline(data):
        req = AnalysisRequest.model_validate(data)
        settings = await services().settings.get_settings()
        timeline = await analysis.generate_gpt_timeline(
            services().openai, req.title, req.overview, settings.gpt.timeline_prompt
        )
        return {"timeline": timeline}

    @app.route("/callable/generateAnalysis", methods=["POST"])
    @callable_endpoint
    async def generate_analysis(data):
        req = AnalysisRequest.model_validate(data)
        settings = await services().settings.get_settings()
        result = await analysis.generate_analysis(
            services().openai, req.title, req.overview, settings.gpt.analysis_prompt
        )
        return {"analysis": result}

    @app.route("/callable/generateContexts", methods=["POST"])
    @callable_endpoint
    async def generate_contexts(data):
        req = ContextsRequest.model_validate(data)
        return {"contexts": await analysis.generate_contexts(services().openai, req.overview)}

    @app.route("/callable/generateEventExplainers", methods=["POST"])
    @callable_endpoint
    async def generate_event_explainers(data):
        req = ExplainerRequest.model_validate(data)
        contexts = await analysis.generate_explainers_for_event(
            services().openai, req.event, req.description, [c.term for c in req.contexts]
        )
        return {"contexts": contexts}

    @app.route("/callable/generateEventContexts", methods=["POST"])
    @callable_endpoint
    async def generate_event_contexts(data):
        req = EventContextsRequest.model_validate(data)
        contexts = await analysis.generate_contexts_for_timeline_event(
            services().openai, req.event, req.description
        )
        return {"contexts": contexts}

    @app.route("/callable/generateAnalysisContexts", methods=["POST"])
    @callable_endpoint
    async def generate_analysis_contexts(data):
        req = AnalysisContextsRequest.model_validate(data)
        contexts = await analysis.generate_contexts_for_analysis(
            services().openai, req.section, req.items
        )
        return {"contexts": contexts}

    @app.route("/callable/generatePhasedTimeline", methods=["POST"])
    @callable_endpoint
    async def generate_phased_timeline(data):
        req = AnalysisRequest.model_validate(data)
        phases = await analysis.generate_phased_timeline(services().openai, req.title, req.overview)
        return {"phases": phases}

    # ==================== Drafts API ====================

    @app.route("/api/drafts", methods=["GET"])
    @api_endpoint
    async def list_drafts(body):
        drafts = await services().drafts.fetch_drafts()
        return jsonify({"drafts": [_draft_view(d) for d in drafts]})

    @app.route("/api/drafts", methods=["POST"])
    @api_endpoint
    async def create_draft(body):
        draft_id = await services().drafts.create_draft(body)
        return jsonify({"id": draft_id}), 201

    @app.route("/api/drafts/<draft_id>", methods=["GET"])
    @api_endpoint
    async def get_draft(body, draft_id):
        draft = await services().drafts.fetch_draft(draft_id)
        if draft is None:
            raise CallableError("NOT_FOUND", f"Draft not found: {draft_id}")
        return jsonify(_draft_view(draft))

    @app.route("/api/drafts/<draft_id>", methods=["PATCH"])
    @api_endpoint
    async def update_draft(body, draft_id):
        await services().drafts.update_draft(draft_id, body)
        return jsonify({"ok": True})

    @app.route("/api/drafts/<draft_id>", methods=["DELETE"])
    @api_endpoint
    async def delete_draft(body, draft_id):
        deleted = await services().drafts.delete_draft(draft_id)
        return jsonify({"deleted": deleted})

    @app.route("/api/drafts/<draft_id>/timeline", methods=["POST"])
    @api_endpoint
    async def add_timeline_block(body, draft_id):
        """
        Body is one of: a legacy event, {"type": "image", "imageUrl": ...},
        or {"events": [...]} holding generated timeline events.
        """
        drafts = services().drafts
        if isinstance(body.get("events"), list):
            legacy = [sonar_event_to_legacy(e) for e in body["events"] if isinstance(e, dict)]
            blocks = await drafts.add_timeline_events(draft_id, legacy)
            return jsonify({"blocks": blocks}), 201
        if body.get("type") == "image":
            req = ImageBlockRequest.model_validate(body)
            block = await drafts.add_image_block(draft_id, req.image_url, req.caption, req.attribution)
            return jsonify({"block": block}), 201

        block = await drafts.add_timeline_event(draft_id, body)
        return jsonify({"block": block}), 201

    @app.route("/api/drafts/<draft_id>/timeline/<int:index>", methods=["PATCH"])
    @api_endpoint
    async def update_timeline_block(body, draft_id, index):
        block = await services().drafts.update_timeline_event(draft_id, index, body)
        return jsonify({"block": block})

    @app.route("/api/drafts/<draft_id>/timeline/<int:index>", methods=["DELETE"])
    @api_endpoint
    async def delete_timeline_block(body, draft_id, index):
        await services().drafts.delete_timeline_event(draft_id, index)
        return jsonify({"ok": True})

    @app.route("/api/drafts/<draft_id>/publish", methods=["POST"])
    @api_endpoint
    async def publish_draft(body, draft_id):
        path = await services().drafts.publish_draft(draft_id)
        return jsonify({"path": path})

    # ==================== Settings ====================

    @app.route("/api/settings", methods=["GET"])
    @api_endpoint
    async def get_settings(body):
        settings = await services().settings.get_settings()
        return jsonify(settings.to_document())

    @app.route("/api/settings", methods=["PUT"])
    @api_endpoint
    async def save_settings(body):
        provider = services().settings
        if not isinstance(provider, DocumentSettingsProvider):
            raise CallableError("FAILED_PRECONDITION", "Settings are read-only")
        settings = await provider.save_settings(body)
        return jsonify(settings.to_document())

    return app
