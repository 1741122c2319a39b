"""Submit an uploaded video for analysis and validate the structured result."""

import logging
from typing import Any

from pydantic import ValidationError

from equilens.errors import EmptyResponseError, MalformedResultError
from equilens.models.analysis import AnalysisResult
from equilens.models.upload import RemoteFileHandle, RemoteFileState
from equilens.services.interfaces import IRemoteFileService

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """\
You are an expert equestrian biomechanics analyst specializing in show jumping.

Analyze this video and detect ALL jumps present. For each jump, break it down into phases and provide detailed analysis.

Return a JSON object with this exact structure:
{
  "jumps": [
    {
      "jumpNumber": 1,
      "startTime": 0.0,
      "endTime": 5.5,
      "phases": [
        {
          "startTime": 0.0,
          "endTime": 1.5,
          "phaseName": "Approach",
          "riderAnalysis": "Rider position and technique...",
          "horseAnalysis": "Horse movement and balance...",
          "physicsNote": "Physics of this phase...",
          "score": 8
        }
      ],
      "overallScore": 7.5
    }
  ],
  "overallSummary": "Overall performance summary...",
  "suggestedImprovements": ["Improvement 1", "Improvement 2"],
  "movementName": "Show Jumping",
  "similarProRider": "Name of a similar professional rider"
}

For each jump, include these phases as applicable:
- Approach (final strides before takeoff)
- Takeoff (moment of leaving the ground)
- Flight/Bascule (arc over the fence)
- Landing (front legs touch down)
- Getaway (first strides after landing)

Phases must be in chronological order and must not overlap.
Score each phase 1-10. Be specific about timing in seconds.
"""

GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.4,
    "topK": 32,
    "topP": 1,
    "maxOutputTokens": 8192,
    "responseMimeType": "application/json",
}


class AnalysisRequestDriver:
    """Request a jump analysis for an ACTIVE remote file."""

    def __init__(
        self,
        service: IRemoteFileService,
        prompt: str = ANALYSIS_PROMPT,
        generation_config: dict[str, Any] | None = None,
    ) -> None:
        self._service = service
        self._prompt = prompt
        self._generation_config = generation_config or dict(GENERATION_CONFIG)

    def build_request(self, handle: RemoteFileHandle) -> dict[str, Any]:
        """Build the generateContent body referencing the uploaded file."""
        return {
            "contents": [
                {
                    "parts": [
                        {"text": self._prompt},
                        {
                            "file_data": {
                                "mime_type": handle.mime_type,
                                "file_uri": handle.uri,
                            }
                        },
                    ]
                }
            ],
            "generationConfig": self._generation_config,
        }

    async def request_analysis(self, handle: RemoteFileHandle) -> AnalysisResult:
        """Analyze the video behind ``handle``.

        Raises:
            AnalysisServiceError: If the service responds with an error.
            EmptyResponseError: If the response has no text.
            MalformedResultError: If the text is not a valid AnalysisResult.
        """
        if handle.state != RemoteFileState.ACTIVE:
            raise ValueError(f"File {handle.name} is not ready (state={handle.state.value})")
        if not handle.uri:
            raise ValueError(f"File {handle.name} has no URI")

        logger.info("Analyzing file: %s %s", handle.uri, handle.mime_type)
        data = await self._service.generate_content(self.build_request(handle))

        text = extract_response_text(data)
        if not text:
            candidate = first_candidate(data)
            finish_reason = candidate.get("finishReason") if candidate else None
            raise EmptyResponseError(
                "No response from Gemini",
                details={"finish_reason": finish_reason},
            )

        result = parse_analysis(text)
        logger.info(
            "Analysis complete: %d jump(s), movement=%s",
            result.jump_count,
            result.movement_name,
        )
        return result


def first_candidate(data: Any) -> dict[str, Any] | None:
    """The first candidate object of a generateContent response, if well formed."""
    if not isinstance(data, dict):
        return None
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    return candidates[0] if isinstance(candidates[0], dict) else None


def extract_response_text(data: Any) -> str:
    """Concatenate the text parts of the first candidate.

    Missing or wrongly typed fields count as no text.
    """
    candidate = first_candidate(data)
    content = candidate.get("content") if candidate else None
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    ).strip()


def parse_analysis(raw_text: str) -> AnalysisResult:
    """Validate model output against the AnalysisResult schema.

    Raises:
        MalformedResultError: On invalid JSON or any schema mismatch.
    """
    text = raw_text.strip()
    if text.startswith("```"):
        # Strip markdown code fences
        lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
        text = "\n".join(lines).strip()

    try:
        return AnalysisResult.model_validate_json(text)
    except ValidationError as e:
        raise MalformedResultError(
            f"Invalid response structure from analysis: {e.error_count()} error(s)",
            details=e.errors(include_url=False, include_context=False),
        ) from e
