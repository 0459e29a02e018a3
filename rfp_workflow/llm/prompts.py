"""Prompt templates for RFP analysis, question generation and synthesis."""

from typing import Any

from langchain_core.prompts import ChatPromptTemplate

from rfp_workflow.models.ai import ChatTurn


class PromptTemplates:
    """Collection of prompt templates used by the LLM-backed services."""

    SYSTEM_PROMPT = """You are an expert RFP (Request for Proposal) analyst working for a digital agency.
Your role is to:
1. Read RFP documents thoroughly and accurately
2. Extract requirements, constraints and success criteria with precision
3. Judge feasibility, risks and resourcing from the agency's point of view
4. Return only the JSON structure you are asked for, with no surrounding prose

Always base your analysis on the provided document. If information is missing,
leave the field empty rather than inventing it."""

    DEPTH_INSTRUCTIONS = {
        "basic": "Give a concise overview. List only the most important requirements and keywords.",
        "detailed": "Give a thorough analysis covering every section of the schema.",
        "comprehensive": (
            "Give an exhaustive analysis. Capture every explicit and implicit requirement, "
            "break down each discipline in depth and justify feasibility scores."
        ),
    }

    RFP_ANALYSIS_TEMPLATE = """Analyze the following RFP document.

Analysis depth: {depth}
{depth_instructions}
{focus_areas}

RFP Document:
{document_text}

Respond with a single JSON object in this format:
{{
    "project_overview": {{
        "title": "Project title",
        "description": "What the client wants built",
        "scope": "Scope of work",
        "objectives": ["Objective 1", "Objective 2"]
    }},
    "functional_requirements": [
        {{
            "title": "Requirement title",
            "description": "Full description",
            "priority": "low|medium|high|critical",
            "category": "Category",
            "acceptance_criteria": ["Criterion"],
            "estimated_effort": "e.g. 2 weeks"
        }}
    ],
    "non_functional_requirements": [],
    "technical_specifications": {{
        "platform": ["web", "mobile"],
        "technologies": ["React", "PostgreSQL"],
        "integrations": ["Payment gateway"],
        "performance_requirements": {{}}
    }},
    "business_requirements": {{
        "budget_range": "Budget if stated",
        "timeline": "Timeline if stated",
        "target_users": ["Primary user groups"],
        "success_metrics": ["Metric"]
    }},
    "keywords": [
        {{"term": "keyword", "importance": 0.9, "category": "technical|business|domain"}}
    ],
    "risk_factors": [
        {{"factor": "Risk", "level": "low|medium|high", "mitigation": "Mitigation"}}
    ],
    "questions_for_client": ["Clarifying question"],
    "planning_analysis": {{}},
    "design_analysis": {{}},
    "publishing_analysis": {{}},
    "development_analysis": {{}},
    "project_feasibility": {{
        "technical_feasibility": 8,
        "business_feasibility": 7,
        "resource_feasibility": 7
    }},
    "resource_requirements": {{}},
    "timeline_analysis": {{}},
    "confidence_score": 0.85
}}"""

    QUESTION_GENERATION_TEMPLATE = """Based on the RFP analysis below, write up to {max_questions} questions
the agency should answer before starting market research and proposal work.

Project: {project_title}

Analysis summary:
{analysis_summary}

Cover these categories: {categories}
{answers_instruction}

Respond with JSON:
{{
    "questions": [
        {{
            "question_text": "Question",
            "question_type": "single_choice|multiple_choice|text_short|text_long|number|rating|yes_no|date|checklist",
            "category": "One of the categories above",
            "priority": "low|medium|high",
            "context": "Why this matters",
            "options": ["Only for choice questions"],
            "next_step_impact": "What the answer changes downstream",
            "ai_answer": {{"answer_text": "Suggested answer", "confidence": 0.7}}
        }}
    ]
}}"""

    CONSOLIDATION_TEMPLATE = """Consolidate the RFP analysis and the team's answers into insights.

Analysis depth: {depth}
{focus_areas}

RFP analysis summary:
{analysis_summary}

Answered questions:
{answers}

Respond with JSON:
{{
    "executive_summary": "Two or three sentence summary",
    "key_insights": [
        {{"category": "Category", "insight": "Insight", "confidence": 0.8}}
    ],
    "market_context": {{}},
    "technical_requirements": {{}},
    "business_implications": {{}},
    "recommended_approach": {{}},
    "next_steps": {{
        "immediate_actions": ["Action"],
        "research_priorities": ["Priority"]
    }},
    "gap_analysis": {{"missing_information": [], "assumptions": []}},
    "success_metrics": ["Metric"],
    "confidence_score": 0.8
}}"""

    MARKET_RESEARCH_TEMPLATE = """Produce a market research analysis for the project below.

RFP analysis summary:
{analysis_summary}

Team answers to the research questions:
{responses}

Respond with JSON:
{{
    "market_overview": {{"market_size": "", "growth_rate": "", "key_drivers": [], "market_maturity": ""}},
    "target_market": {{"primary_segment": "", "secondary_segments": [], "market_needs": [], "pain_points": []}},
    "competitive_landscape": {{
        "direct_competitors": [{{"name": "", "market_share": "", "strengths": [], "weaknesses": []}}],
        "indirect_competitors": [],
        "competitive_advantages": []
    }},
    "market_trends": {{"current_trends": [], "emerging_trends": [], "technology_trends": [], "regulatory_trends": []}},
    "opportunities_threats": {{
        "opportunities": [{{"opportunity": "", "impact": "high|medium|low", "timeframe": ""}}],
        "threats": [{{"threat": "", "impact": "high|medium|low", "mitigation": ""}}]
    }},
    "recommendations": {{"market_entry_strategy": "", "positioning_strategy": "", "pricing_strategy": "", "marketing_channels": []}},
    "next_steps": {{"immediate_actions": [], "research_priorities": [], "persona_analysis_focus": []}}
}}"""

    TEMPLATES = {
        "rfp_analysis": RFP_ANALYSIS_TEMPLATE,
        "question_generation": QUESTION_GENERATION_TEMPLATE,
        "consolidation": CONSOLIDATION_TEMPLATE,
        "market_research": MARKET_RESEARCH_TEMPLATE,
    }

    @classmethod
    def get_template(cls, template_name: str) -> str:
        """Get a specific template by name."""
        if template_name not in cls.TEMPLATES:
            raise KeyError(f"Unknown prompt template: {template_name}")
        return cls.TEMPLATES[template_name]

    @classmethod
    def get_chat_prompt(cls, template_name: str) -> ChatPromptTemplate:
        """Get a ChatPromptTemplate for a specific task."""
        return ChatPromptTemplate.from_messages([
            ("system", cls.SYSTEM_PROMPT),
            ("human", cls.get_template(template_name)),
        ])

    @classmethod
    def render(cls, template_name: str, **variables: Any) -> list[ChatTurn]:
        """Format a template into provider-neutral chat turns."""
        roles = {"system": "system", "human": "user", "ai": "assistant"}
        messages = cls.get_chat_prompt(template_name).format_messages(**variables)
        return [ChatTurn(role=roles[m.type], content=m.content) for m in messages]
