"""Pytest fixtures and configuration for RFP Proposal Engine tests."""

import os
import pytest
from datetime import datetime
from typing import Generator, List
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

# Set test environment variables before importing app
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("API_USERNAME", "admin")
os.environ.setdefault("API_PASSWORD", "test-password")
os.environ.setdefault("CANVA_CLIENT_ID", "canva-client")
os.environ.setdefault("CANVA_CLIENT_SECRET", "canva-secret")
os.environ.setdefault("CANVA_REDIRECT_URI", "http://localhost:8000/api/canva/callback")
os.environ.setdefault("CANVA_TOKEN_ENC_KEY", "test-encryption-key")
os.environ.setdefault("FRONTEND_BASE_URL", "http://localhost:3000")
os.environ.setdefault("FIRECRAWL_API_KEY", "")
os.environ.setdefault("DEBUG", "true")

from src.models import (  # noqa: E402
    Company,
    CompanyStatistics,
    PrimaryContact,
    ProjectReference,
    ProjectType,
    ProposalRecord,
    RFPRecord,
    SectionRecord,
    SectionType,
    TeamMember,
    TemplateRecord,
    TemplateSection,
    TitleContact,
    LibrarySnapshot,
)
from tests.fakes import FakeLLM  # noqa: E402


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


# ===========================================
# Sample Data Fixtures
# ===========================================

@pytest.fixture
def sample_company() -> Company:
    """Company profile with a primary contact."""
    return Company(
        id="company_1",
        name="Acme Consulting",
        website="https://acme.example.com",
        email="hello@acme.example.com",
        phone="555-010-2000",
        core_capabilities=["Software development", "Data engineering"],
        statistics=CompanyStatistics(years_in_business=12, projects_completed=240),
        cover_letter="Acme Consulting is pleased to submit this proposal.",
        firm_qualifications_and_experience="Acme has delivered public-sector systems since 2012.",
        primary_contact=PrimaryContact(
            name="Jane Doe",
            title="Principal",
            email="jane@acme.example.com",
            phone="555-010-2001",
        ),
        created_at=datetime(2025, 1, 1),
    )


@pytest.fixture
def sample_team_members() -> List[TeamMember]:
    return [
        TeamMember(
            id="member_1",
            name_with_credentials="Jane Doe, PMP",
            position="Project Manager",
            biography="Jane has led software development projects for county governments.",
        ),
        TeamMember(
            id="member_2",
            name_with_credentials="John Smith",
            position="Lead Engineer",
            biography="John builds cloud data platforms.",
        ),
    ]


@pytest.fixture
def sample_references() -> List[ProjectReference]:
    return [
        ProjectReference(
            id="ref_1",
            organization_name="City of Springfield",
            contact_name="Pat Lee",
            contact_email="pat@springfield.gov",
            contact_phone="555-020-3000",
            scope_of_work="Permit management software development.",
            outcomes="Cut permit processing time in half.",
        ),
        ProjectReference(
            id="ref_2",
            organization_name="Shelby County",
            scope_of_work="Communications strategy for a transit levy.",
        ),
    ]


@pytest.fixture
def sample_library(sample_company, sample_team_members, sample_references) -> LibrarySnapshot:
    return LibrarySnapshot(
        company=sample_company,
        team_members=sample_team_members,
        references=sample_references,
    )


@pytest.fixture
def sample_rfp_record() -> RFPRecord:
    """Analyzed RFP as stored."""
    return RFPRecord(
        id="rfp_1",
        title="Permit Portal Modernization",
        client_name="County of Riverside",
        submission_deadline="12/15/2030",
        project_type=ProjectType.SOFTWARE_DEVELOPMENT,
        key_requirements=["Vendor must provide a cloud-hosted permit portal"],
        evaluation_criteria=["Technical approach (40%)", "Cost (30%)"],
        deliverables=["Permit portal", "Training"],
        project_scope="Replace the legacy permit system with a web portal.",
        raw_text="Request for Proposals. The County of Riverside seeks a vendor for software development.",
        created_at=datetime(2030, 1, 1),
        updated_at=datetime(2030, 1, 1),
    )


@pytest.fixture
def sample_proposal() -> ProposalRecord:
    """Proposal with title, cover letter, one AI section and a team section."""
    stamp = datetime(2030, 1, 2)
    return ProposalRecord(
        id="prop_1",
        rfp_id="rfp_1",
        company_id="company_1",
        template_id="ai-template",
        title="Riverside Permit Portal Proposal",
        sections={
            "Title": SectionRecord(
                content=TitleContact(
                    submitted_by="Acme Consulting",
                    name="Jane Doe",
                    email="jane@acme.example.com",
                    number="555-010-2001",
                ),
                type=SectionType.CONTENT_LIBRARY,
                last_modified=stamp,
            ),
            "Cover Letter": SectionRecord(
                content="Dear Selection Committee,\n\nAcme Consulting is pleased to submit this proposal.",
                type=SectionType.CONTENT_LIBRARY,
                last_modified=stamp,
            ),
            "Technical Approach": SectionRecord(
                content="## Phase 1\n\n- Discovery\n- **Design** workshops\n\n| Phase | Weeks |\n|---|---|\n| Build | 12 |",
                type=SectionType.AI_GENERATED,
                last_modified=stamp,
            ),
            "Key Personnel": SectionRecord(
                content="**Jane Doe, PMP** - Project Manager",
                type=SectionType.CONTENT_LIBRARY,
                last_modified=stamp,
                selected_ids=["member_1"],
            ),
        },
        created_at=stamp,
        updated_at=stamp,
    )


@pytest.fixture
def sample_template() -> TemplateRecord:
    return TemplateRecord(
        id="tpl_1",
        name="Software Development Proposal",
        project_type=ProjectType.SOFTWARE_DEVELOPMENT,
        sections=[
            TemplateSection(name="Budget Estimate", content="Cost table by phase.", order=2),
            TemplateSection(name="Technical Approach", content="Phases and testing.", order=1),
        ],
    )


# ===========================================
# Mock Fixtures
# ===========================================

@pytest.fixture
def mock_db() -> MagicMock:
    """DatabaseService double; every data method is an AsyncMock returning nothing."""
    db = MagicMock()
    for name in [
        "create_rfp", "get_rfp", "search_rfps", "update_rfp", "delete_rfp",
        "create_proposal", "get_proposal", "list_proposals", "update_proposal", "delete_proposal",
        "list_templates", "get_template", "get_template_by_name", "create_template",
        "update_template", "delete_template",
        "get_company", "get_latest_company", "upsert_company",
        "list_team_members", "get_team_member", "create_team_member", "update_team_member",
        "list_references", "get_reference", "create_reference", "update_reference",
        "list_past_projects", "get_past_project", "create_past_project", "update_past_project",
        "get_canva_connection", "upsert_canva_connection", "delete_canva_connection",
        "get_asset_link", "upsert_asset_link", "get_company_template", "upsert_company_template",
        "get_proposal_design", "upsert_proposal_design", "delete_proposal_design",
        "health_check",
    ]:
        setattr(db, name, AsyncMock(return_value=None))
    db.list_rfps = AsyncMock(return_value=([], 0))
    for name in [
        "search_rfps", "list_proposals", "list_templates", "list_team_members", "list_references",
        "list_past_projects",
    ]:
        getattr(db, name).return_value = []
    db.delete_rfp.return_value = True
    db.delete_proposal.return_value = True
    db.delete_template.return_value = True
    db.health_check.return_value = True
    return db


@pytest.fixture
def mock_canva_service() -> MagicMock:
    return MagicMock()


# ===========================================
# Client Fixtures
# ===========================================

@pytest.fixture
def client(mock_db, fake_llm, mock_canva_service) -> Generator[TestClient, None, None]:
    """Test client with storage, model and Canva service replaced; requests are authenticated."""
    from src.main import app
    from src.api.deps import get_canva_service, get_current_user, get_db, get_llm

    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_llm] = lambda: fake_llm
    app.dependency_overrides[get_canva_service] = lambda: mock_canva_service
    app.dependency_overrides[get_current_user] = lambda: {"user_id": "admin", "username": "admin"}

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(mock_db, fake_llm, mock_canva_service) -> Generator[TestClient, None, None]:
    """Test client without the auth override."""
    from src.main import app
    from src.api.deps import get_canva_service, get_db, get_llm

    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_llm] = lambda: fake_llm
    app.dependency_overrides[get_canva_service] = lambda: mock_canva_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ===========================================
# Pytest Configuration
# ===========================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Settings are cached per process; clear between tests that patch the environment."""
    yield
    from src.core.config import get_settings
    get_settings.cache_clear()
