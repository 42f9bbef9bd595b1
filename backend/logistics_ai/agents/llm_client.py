"""
LLM 클라이언트 — Claude API 호출 래퍼.
- API 키가 없거나 호출이 실패하면 None 반환 (호출자가 템플릿 fallback 처리).
- 스윕 워커 스레드에서 쓰는 동기 complete().
- explain_anomaly(): 이상 감지 알림에 붙일 추정 원인 요약.
"""

import logging
import threading

from logistics_ai.config import settings

logger = logging.getLogger(__name__)

_client = None
_available = False
_initialized = False
_init_lock = threading.Lock()

ANOMALY_SYSTEM_PROMPT = (
    "You are an operations analyst for a German building-materials distributor. "
    "Given an anomaly detected in the order fulfillment pipeline, state the most probable "
    "cause and one concrete next step in at most two sentences."
)


def _init_client():
    """Anthropic 클라이언트 초기화 (lazy, 1회)"""
    global _client, _available, _initialized
    with _init_lock:
        if _initialized:
            return
        _initialized = True

        if not settings.ANTHROPIC_API_KEY:
            logger.warning("ANTHROPIC_API_KEY 미설정 — LLM 기능 비활성화 (템플릿 fallback 사용)")
            _available = False
            return

        try:
            import anthropic
            _client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
            _available = True
            logger.info("Claude API 클라이언트 초기화 완료")
        except Exception as e:
            logger.error(f"Claude API 클라이언트 초기화 실패: {e}")
            _available = False


def is_available() -> bool:
    """LLM 호출이 가능한지 확인"""
    _init_client()
    return _available


def complete(system_prompt: str, user_prompt: str) -> str | None:
    """Claude API 동기 호출. 실패 시 None 반환."""
    _init_client()
    if not _available or _client is None:
        return None

    try:
        response = _client.messages.create(
            model=settings.LLM_MODEL,
            max_tokens=settings.LLM_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        text = response.content[0].text
        logger.info(
            f"LLM 응답 수신 ({len(text)} chars, "
            f"{response.usage.input_tokens}+{response.usage.output_tokens} tokens)"
        )
        return text.strip()
    except Exception as e:
        logger.error(f"LLM 호출 실패: {e}")
        return None


def template_explanation(kind: str, facts: dict) -> str:
    """LLM을 쓸 수 없을 때의 결정적 요약"""
    if kind == "PROCESSING_DELAY":
        statuses = ", ".join(f"{s}: {n}" for s, n in sorted(facts.get("by_status", {}).items()))
        return (
            f"Probable cause: orders accumulating in {statuses or 'pipeline'} beyond twice the "
            "expected processing time. Check the responsible stage for blocked work."
        )
    if kind == "DEMAND_SPIKE":
        return (
            f"Probable cause: demand for {facts.get('category')} at {facts.get('demand')} units "
            f"versus a normal {facts.get('normal')} per day. Review stock levels and reorder plans."
        )
    return "Probable cause unknown. Manual review required."


def explain_anomaly(kind: str, facts: dict) -> str:
    """Claude로 원인 요약을 시도하고, 불가하면 템플릿을 쓴다."""
    prompt = f"Anomaly type: {kind}\nFacts: {facts}"
    text = complete(ANOMALY_SYSTEM_PROMPT, prompt)
    return text or template_explanation(kind, facts)
