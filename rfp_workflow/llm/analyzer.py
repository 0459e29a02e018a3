"""RFP analyzer using an LLM provider for structured extraction."""

from langsmith import traceable

from rfp_workflow.config import get_settings
from rfp_workflow.llm.output_parser import AnalysisOutputParser
from rfp_workflow.llm.prompts import PromptTemplates
from rfp_workflow.models.ai import AIUsage
from rfp_workflow.models.analysis import AnalysisDepth, KeywordGroups, RFPAnalysisResult
from rfp_workflow.providers import AIProvider, ProviderFactory
from rfp_workflow.utils.logging import LoggerMixin


TRUNCATION_NOTE = "\n\n[Document truncated: analysed the first {kept} of {total} characters]"


def truncate_document(text: str, max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` and append a note saying so."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_NOTE.format(kept=max_chars, total=len(text))


def extract_keywords(analysis: RFPAnalysisResult) -> KeywordGroups:
    """Group an analysis' keywords by category, most important first."""
    groups: dict[str, list] = {"technical": [], "business": [], "domain": []}
    for keyword in analysis.keywords:
        groups.get(keyword.category, groups["domain"]).append(keyword)
    return KeywordGroups(
        technical_keywords=groups["technical"],
        business_keywords=groups["business"],
        domain_keywords=groups["domain"],
    )


class RFPAnalyzer(LoggerMixin):
    """LLM-based RFP analyzer with structured output."""

    def __init__(self, provider: AIProvider | None = None, temperature: float | None = None):
        """Initialize RFP analyzer.

        Args:
            provider: Chat provider; defaults to the configured default provider.
            temperature: Sampling temperature, defaults to the configured value.
        """
        settings = get_settings()
        self._provider = provider or ProviderFactory.create(settings.default_provider)
        self._temperature = settings.temperature if temperature is None else temperature
        self._max_chars = settings.max_analysis_chars
        self._max_tokens = settings.max_tokens
        self._parser = AnalysisOutputParser()
        self.last_usage: AIUsage | None = None
        self.last_model: str | None = None

        self.log_info("RFP Analyzer initialized", provider=self._provider.name)

    @traceable(name="analyze_rfp")
    def analyze(
        self,
        text: str,
        *,
        model_id: str | None = None,
        depth: AnalysisDepth = AnalysisDepth.DETAILED,
        focus_areas: list[str] | None = None,
    ) -> RFPAnalysisResult:
        """Analyze RFP text.

        Args:
            text: Extracted document text.
            model_id: Model to use, defaults to the provider's default.
            depth: How exhaustive the analysis should be.
            focus_areas: Topics to emphasise.

        Returns:
            Structured analysis.

        Raises:
            AIProviderError: If the call fails or the reply cannot be parsed.
        """
        depth = AnalysisDepth(depth)
        document_text = truncate_document(text, self._max_chars)
        if len(document_text) != len(text):
            self.log_warning("Document truncated for analysis", original_chars=len(text), kept=self._max_chars)

        turns = PromptTemplates.render(
            "rfp_analysis",
            depth=depth.value,
            depth_instructions=PromptTemplates.DEPTH_INSTRUCTIONS[depth.value],
            focus_areas=f"Focus areas: {', '.join(focus_areas)}" if focus_areas else "",
            document_text=document_text,
        )

        self.log_info("Starting analysis", chars=len(document_text), depth=depth.value)
        response = self._provider.send_messages(
            turns,
            model=model_id,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        self.last_usage = response.usage
        self.last_model = response.model

        analysis = self._parser.parse(response.content)

        self.log_info(
            "Analysis complete",
            requirements_found=len(analysis.functional_requirements) + len(analysis.non_functional_requirements),
            confidence=analysis.confidence_score,
            tokens=response.usage.total_tokens,
        )
        return analysis
