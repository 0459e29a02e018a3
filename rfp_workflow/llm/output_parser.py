"""Structured output parsing for LLM responses."""

import json
import re
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from rfp_workflow.errors import AIProviderError
from rfp_workflow.models.analysis import (
    BusinessRequirements,
    Keyword,
    ProjectOverview,
    Requirement,
    RFPAnalysisResult,
    RiskFactor,
    TechnicalSpecifications,
)
from rfp_workflow.utils.logging import LoggerMixin


PRIORITY_MAP = {
    "critical": "critical",
    "high": "high",
    "mandatory": "high",
    "must": "high",
    "required": "high",
    "medium": "medium",
    "moderate": "medium",
    "normal": "medium",
    "low": "low",
    "optional": "low",
    "nice-to-have": "low",
    "nice to have": "low",
}

KEYWORD_CATEGORIES = {"technical", "business", "domain"}

FREE_FORM_SECTIONS = (
    "planning_analysis",
    "design_analysis",
    "publishing_analysis",
    "development_analysis",
    "project_feasibility",
    "resource_requirements",
    "timeline_analysis",
)


def _loads_object(candidate: str) -> dict[str, Any] | None:
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_json(text: str) -> dict[str, Any]:
    """Extract a JSON object from text that may contain other content.

    Tries a direct parse, then fenced code blocks, then the outermost braces
    with trailing commas removed.

    Raises:
        ValueError: If no JSON object can be recovered.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Empty LLM output")

    direct = _loads_object(text)
    if direct is not None:
        return direct

    for block in re.findall(r"```(?:json)?\s*([\s\S]*?)\s*```", text):
        parsed = _loads_object(block.strip())
        if parsed is not None:
            return parsed

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object found in text")

    candidate = text[start:end + 1]
    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed

    candidate = re.sub(r",\s*([}\]])", r"\1", candidate)
    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed

    raise ValueError("Could not parse JSON object from text")


def normalize_priority(priority: Any) -> str:
    """Map free-form priority words onto low/medium/high/critical."""
    if not isinstance(priority, str) or not priority.strip():
        return "medium"
    return PRIORITY_MAP.get(priority.strip().lower(), "medium")


def normalize_confidence(value: Any, default: float = 0.0) -> float:
    """Accept 0-1 or 0-100 confidence values and clamp to 0-1."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence > 1.0:
        confidence /= 100.0
    return max(0.0, min(1.0, confidence))


class AnalysisOutputParser(LoggerMixin):
    """Turns raw LLM output into an RFPAnalysisResult."""

    def parse(self, llm_output: str) -> RFPAnalysisResult:
        """Parse LLM output into a validated analysis.

        Missing sections get defaults, requirements without an ID get one,
        and priority and confidence values are normalised.

        Args:
            llm_output: Raw LLM output string.

        Returns:
            Parsed analysis.

        Raises:
            AIProviderError: If the output holds no usable JSON object.
        """
        try:
            data = extract_json(llm_output)
        except ValueError as e:
            self.log_error("Failed to parse LLM output", error=str(e), preview=(llm_output or "")[:200])
            raise AIProviderError(
                "AI response could not be parsed as JSON", code="UNPARSEABLE_AI_RESPONSE"
            ) from e

        result = RFPAnalysisResult(
            project_overview=self._section(data, "project_overview", ProjectOverview),
            functional_requirements=self._parse_requirements(data.get("functional_requirements")),
            non_functional_requirements=self._parse_requirements(data.get("non_functional_requirements")),
            technical_specifications=self._section(data, "technical_specifications", TechnicalSpecifications),
            business_requirements=self._section(data, "business_requirements", BusinessRequirements),
            keywords=self._parse_keywords(data.get("keywords")),
            risk_factors=self._parse_risks(data.get("risk_factors")),
            questions_for_client=[str(q) for q in data.get("questions_for_client") or [] if q],
            confidence_score=normalize_confidence(data.get("confidence_score"), default=0.5),
            **{
                name: data[name]
                for name in FREE_FORM_SECTIONS
                if isinstance(data.get(name), dict)
            },
        )

        self.log_info(
            "Analysis parsed",
            functional=len(result.functional_requirements),
            non_functional=len(result.non_functional_requirements),
            keywords=len(result.keywords),
            confidence=result.confidence_score,
        )
        return result

    def _section(self, data: dict[str, Any], key: str, model: type) -> Any:
        value = data.get(key)
        if not isinstance(value, dict):
            return model()
        # LLMs often send null for lists
        cleaned = {k: v for k, v in value.items() if v is not None}
        try:
            return model.model_validate(cleaned)
        except ValidationError as e:
            self.log_warning("Invalid analysis section, using defaults", section=key, error=str(e))
            return model()

    def _parse_requirements(self, items: Any) -> list[Requirement]:
        """Parse requirement data, accepting plain strings as well as dicts."""
        requirements = []
        for idx, item in enumerate(items or []):
            if isinstance(item, str):
                item = {"title": item[:100], "description": item}
            if not isinstance(item, dict):
                continue

            title = item.get("title") or (item.get("description") or "Untitled requirement")[:100]
            try:
                requirements.append(
                    Requirement(
                        id=str(item.get("id") or uuid4()),
                        title=title,
                        description=item.get("description") or "",
                        priority=normalize_priority(item.get("priority")),
                        category=item.get("category") or "general",
                        acceptance_criteria=[str(c) for c in item.get("acceptance_criteria") or []],
                        estimated_effort=item.get("estimated_effort"),
                    )
                )
            except ValidationError as e:
                self.log_warning("Failed to parse requirement", index=idx, error=str(e))
        return requirements

    def _parse_keywords(self, items: Any) -> list[Keyword]:
        keywords = []
        for item in items or []:
            if isinstance(item, str):
                keywords.append(Keyword(term=item))
                continue
            if not isinstance(item, dict) or not (item.get("term") or item.get("keyword")):
                continue
            category = str(item.get("category") or "domain").lower()
            keywords.append(
                Keyword(
                    term=item.get("term") or item.get("keyword"),
                    importance=normalize_confidence(item.get("importance"), default=0.5),
                    category=category if category in KEYWORD_CATEGORIES else "domain",
                )
            )
        return keywords

    def _parse_risks(self, items: Any) -> list[RiskFactor]:
        risks = []
        for item in items or []:
            if isinstance(item, str):
                risks.append(RiskFactor(factor=item))
                continue
            if not isinstance(item, dict) or not item.get("factor"):
                continue
            level = normalize_priority(item.get("level"))
            risks.append(
                RiskFactor(
                    factor=item["factor"],
                    level="high" if level == "critical" else level,
                    mitigation=item.get("mitigation") or "",
                )
            )
        return risks
