"""Main entry point for the RFP workflow service."""

import argparse
import mimetypes
from pathlib import Path

from rfp_workflow.db.session import init_db, session_scope
from rfp_workflow.graph import AnalysisPipeline
from rfp_workflow.loaders import extract_text
from rfp_workflow.models.analysis import AnalysisDepth, AnalysisOptions
from rfp_workflow.models.usage import UserCreate, UserTier
from rfp_workflow.providers import ModelRegistry
from rfp_workflow.questions import QuestionService
from rfp_workflow.services.documents import DocumentService, UploadedFile
from rfp_workflow.services.users import UserService
from rfp_workflow.utils.logging import configure_from_settings, get_logger


logger = get_logger(__name__)

CLI_USER_EMAIL = "cli@localhost"


def initialize() -> None:
    """Create tables and seed the preset AI models."""
    init_db()
    with session_scope() as session:
        added = ModelRegistry(session).seed()
    print(f"Database ready ({added} AI models added)")


def _cli_user_id(session) -> str:
    """The local admin account the CLI acts as."""
    users = UserService(session)
    user = users.find_by_email(CLI_USER_EMAIL)
    if user is not None:
        return user.id
    return users.create_user(UserCreate(email=CLI_USER_EMAIL, name="CLI", tier=UserTier.ADMIN)).id


def extract(file_path: Path) -> None:
    """Print the text extracted from a local file."""
    result = extract_text(file_path)
    print(f"Method: {result.method}  Quality: {result.quality.value}  Words: {result.word_count}")
    for warning in result.warnings:
        print(f"  ! {warning}")
    print("\n" + result.text)


def analyze(file_path: Path, project_id: str | None, depth: str, model_id: str | None) -> None:
    """Upload a local RFP file and run the full analysis on it.

    Args:
        file_path: RFP document on disk.
        project_id: Optional project to attach the document to.
        depth: Analysis depth.
        model_id: Optional AI model ID; the default model is used otherwise.
    """
    init_db()
    with session_scope() as session:
        ModelRegistry(session).seed()
        user_id = _cli_user_id(session)
        upload = UploadedFile(
            file_name=file_path.name,
            content_type=mimetypes.guess_type(file_path.name)[0],
            data=file_path.read_bytes(),
        )
        uploaded = DocumentService(session).upload_rfp(upload, file_path.stem, user_id, project_id=project_id)
        logger.info("RFP uploaded", rfp_document_id=uploaded.rfp_document_id)

        options = AnalysisOptions(depth=AnalysisDepth(depth), selected_model_id=model_id)
        response = AnalysisPipeline(session).run(uploaded.rfp_document_id, user_id, options)

    record = response.analysis
    overview = record.analysis.project_overview

    print("\n" + "=" * 60)
    print("ANALYSIS RESULTS")
    print("=" * 60)

    print(f"\nAnalysis ID: {record.id}")
    print(f"Status: {record.status.value}  Model: {record.model_used}")
    print(f"Confidence: {record.analysis.confidence_score:.0%}")
    if overview.title:
        print(f"\n{overview.title}\n{overview.description}")

    requirements = record.analysis.functional_requirements + record.analysis.non_functional_requirements
    if requirements:
        print(f"\nRequirements ({len(requirements)}):")
        for req in requirements:
            print(f"  - [{req.priority}] {req.title}")

    if record.analysis.risk_factors:
        print(f"\nRisks ({len(record.analysis.risk_factors)}):")
        for risk in record.analysis.risk_factors:
            print(f"  - ({risk.level}) {risk.factor}")

    print(f"\nQuestions generated: {response.questions_generated}")
    print("\n" + "=" * 60)


def list_questions(analysis_id: str) -> None:
    """Print the questions stored for an analysis."""
    with session_scope() as session:
        questions = QuestionService(session).list_questions(analysis_id)

    for question in questions:
        answered = "x" if question.user_response else " "
        print(f"[{answered}] {question.order_index:>2}. ({question.category}) {question.question_text}")
        for option in question.options:
            print(f"        - {option}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="RFP Workflow - RFP analysis and discovery questions")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create tables and seed AI models")

    extract_parser = subparsers.add_parser("extract", help="Extract text from a document")
    extract_parser.add_argument("file", type=Path, help="Document to extract")

    analyze_parser = subparsers.add_parser("analyze", help="Upload and analyze an RFP document")
    analyze_parser.add_argument("file", type=Path, help="RFP document")
    analyze_parser.add_argument("--project", default=None, help="Project ID")
    analyze_parser.add_argument(
        "--depth", default=AnalysisDepth.DETAILED.value, choices=[d.value for d in AnalysisDepth]
    )
    analyze_parser.add_argument("--model", default=None, help="AI model ID")

    questions_parser = subparsers.add_parser("questions", help="List the questions of an analysis")
    questions_parser.add_argument("analysis_id", help="Analysis ID")

    # Server command
    server_parser = subparsers.add_parser("serve", help="Start API server")
    server_parser.add_argument("--host", default="0.0.0.0", help="Host")
    server_parser.add_argument("--port", type=int, default=8000, help="Port")
    server_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    args = parser.parse_args()
    configure_from_settings()

    if args.command == "init-db":
        initialize()
    elif args.command == "extract":
        extract(args.file)
    elif args.command == "analyze":
        analyze(args.file, args.project, args.depth, args.model)
    elif args.command == "questions":
        list_questions(args.analysis_id)
    elif args.command == "serve":
        import uvicorn
        uvicorn.run("rfp_workflow.api.app:app", host=args.host, port=args.port, reload=args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
