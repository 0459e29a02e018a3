"""Read access to stored RFP analyses."""

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from rfp_workflow.db.tables import ProjectMember, RFPAnalysis
from rfp_workflow.llm.analyzer import extract_keywords
from rfp_workflow.models.analysis import AnalysisRecord, AnalysisStatus, KeywordGroups, RFPAnalysisResult
from rfp_workflow.questions import store


def analysis_record(row: RFPAnalysis) -> AnalysisRecord:
    return AnalysisRecord(
        id=row.id,
        rfp_document_id=row.rfp_document_id,
        project_id=row.project_id,
        status=AnalysisStatus(row.status),
        analysis=RFPAnalysisResult.model_validate(row.analysis or {}),
        model_used=row.model_used,
        error_message=row.error_message,
        created_at=row.created_at,
    )


class AnalysisService:
    def __init__(self, session: Session):
        self._session = session

    def list_analyses(
        self, user_id: str, project_id: str | None = None, status: str | None = None
    ) -> list[AnalysisRecord]:
        """Analyses the caller created or that belong to one of their projects."""
        member_projects = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        query = select(RFPAnalysis).where(
            or_(RFPAnalysis.created_by == user_id, RFPAnalysis.project_id.in_(member_projects))
        )
        if project_id:
            query = query.where(RFPAnalysis.project_id == project_id)
        if status:
            query = query.where(RFPAnalysis.status == status)
        rows = self._session.scalars(query.order_by(RFPAnalysis.created_at.desc()))
        return [analysis_record(row) for row in rows]

    def get_analysis(self, analysis_id: str) -> AnalysisRecord:
        return analysis_record(store.get_analysis(self._session, analysis_id))

    def get_keywords(self, analysis_id: str) -> KeywordGroups:
        row = store.get_analysis(self._session, analysis_id)
        return extract_keywords(RFPAnalysisResult.model_validate(row.analysis or {}))
