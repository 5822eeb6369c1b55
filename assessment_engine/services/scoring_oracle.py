"""
Scoring Oracle - LLM Grading of Subjective Answers
==================================================

Sends a rubric prompt (accuracy 50%, completeness 30%, clarity 20%) to an
OpenAI-compatible chat-completions endpoint and parses a JSON verdict:

    {"score", "rubric": {"accuracy", "completeness", "clarity"},
     "feedback", "reasoning", "confidence"}

The oracle is optional. get_scoring_oracle() returns None when no API key
is configured, and callers fall back to lexical scoring.
"""
import json
import logging
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a rigorous academic grading engine. You output ONLY valid JSON."

EVALUATION_PROMPT = """You are a Senior Academic Evaluator specializing in technical assessments.
Your task is to provide a rigorous, fair, and evidence-based evaluation of a student's answer.

### ASSESSMENT DATA
- Question: "{prompt}"
- Reference Answer (Context): "{reference}"
- Student Response: "{answer}"
- Maximum Points: {max_score}

### EVALUATION RUBRIC (0-100% scale per criteria)
1. Factual Accuracy (Weight: 50%): How many of the core technical facts from the reference are present and correct?
2. Completeness (Weight: 30%): Does the answer cover all parts of the question prompt?
3. Clarity & Logic (Weight: 20%): Is the response well-structured and free of contradictions?

### INSTRUCTIONS
1. Do not award full marks for vague but mostly correct answers.
2. Identify specific omissions or misconceptions.
3. Confidence is the share of your final score explicitly backed by the reference text.

### OUTPUT FORMAT (JSON ONLY)
{{
  "score": number (0 to {max_score}),
  "rubric": {{"accuracy": number, "completeness": number, "clarity": number}},
  "feedback": "string (constructive, max 25 words)",
  "reasoning": "string",
  "confidence": number (0 to 1)
}}"""


class OracleError(Exception):
    """Raised when the oracle call fails or returns an unusable verdict"""


@dataclass
class OracleVerdict:
    """Parsed oracle output; score already clamped to [0, max_score]"""
    score: float
    feedback: str = ""
    reasoning: str = ""
    confidence: Optional[float] = None
    rubric: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_verdict(content: str, max_score: float) -> OracleVerdict:
    """
    Parse the model's JSON reply.

    Markdown code fences around the JSON are tolerated. A missing or
    non-numeric score counts as 0.
    """
    text = str(content or "").strip()
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]

    try:
        data = json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise OracleError(f"Oracle returned invalid JSON: {text[:200]}") from e
    if not isinstance(data, dict):
        raise OracleError("Oracle returned a non-object verdict")

    try:
        score = float(data.get("score") or 0)
    except (TypeError, ValueError):
        score = 0.0

    confidence = data.get("confidence")
    try:
        confidence = float(confidence) if confidence is not None else None
    except (TypeError, ValueError):
        confidence = None

    rubric = data.get("rubric")
    return OracleVerdict(
        score=max(0.0, min(float(max_score), score)),
        feedback=str(data.get("feedback") or ""),
        reasoning=str(data.get("reasoning") or ""),
        confidence=confidence,
        rubric=rubric if isinstance(rubric, dict) else {}
    )


class LLMScoringOracle:
    """
    Chat-completions scoring oracle.

    Args:
        api_key: Bearer token for the endpoint
        base_url: API root, e.g. https://api.openai.com/v1
        model: Model name
        timeout: HTTP timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.SCORING_ORACLE_BASE_URL).rstrip("/")
        self.model = model or settings.SCORING_ORACLE_MODEL
        self.timeout = timeout or settings.SCORING_ORACLE_TIMEOUT_SECONDS
        self.transport = transport

        logger.info(f"[ORACLE] Initialized with model: {self.model}")

    async def evaluate_subjective_answer(
        self,
        answer: str,
        prompt: str,
        reference: str,
        max_score: float = 100
    ) -> OracleVerdict:
        """
        Grade one subjective answer.

        Raises:
            OracleError: transport failure, HTTP error or unparseable reply
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": EVALUATION_PROMPT.format(
                    prompt=prompt, reference=reference, answer=answer, max_score=max_score
                )}
            ],
            "response_format": {"type": "json_object"}
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise OracleError(f"Oracle request failed: {e}") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise OracleError("Oracle response missing message content") from e

        verdict = parse_verdict(content, max_score)
        logger.debug(f"[ORACLE] score={verdict.score} confidence={verdict.confidence}")
        return verdict


_oracle: Optional[LLMScoringOracle] = None


def get_scoring_oracle() -> Optional[LLMScoringOracle]:
    """Get singleton oracle, or None when no API key is configured"""
    global _oracle
    if not settings.SCORING_ORACLE_API_KEY:
        return None
    if _oracle is None:
        _oracle = LLMScoringOracle(api_key=settings.SCORING_ORACLE_API_KEY)
    return _oracle
