"""Built-in proposal templates, seeded when the templates table is empty."""

import logging
from typing import List, Dict, Any

from src.core.database import DatabaseService
from src.models import ProjectType, TemplateRecord, TemplateSection

logger = logging.getLogger(__name__)

SYSTEM_USER = "system"

# (title, content type, guidance) per default template
DEFAULT_TEMPLATE_SECTIONS: Dict[ProjectType, Dict[str, Any]] = {
    ProjectType.SOFTWARE_DEVELOPMENT: {
        "name": "Software Development Proposal",
        "sections": [
            (
                "Technical Approach & Methodology",
                "structured",
                "Cover project initiation and planning, technical architecture, "
                "development phases, testing and quality assurance, deployment and "
                "launch, maintenance and support.",
            ),
            (
                "Key Personnel and Experience",
                "team_profiles",
                "Project lead, technical lead, senior architect and QA lead.",
            ),
            ("Budget Estimate", "financial_breakdown", "Detailed cost table by phase."),
            ("Project Timeline", "project_schedule", "Phases with durations and milestones."),
            ("References", "client_references", "At least three comparable software projects."),
        ],
    },
    ProjectType.STRATEGIC_COMMUNICATIONS: {
        "name": "Strategic Communications Proposal",
        "sections": [
            ("Experience & Qualifications", "credentials_showcase", ""),
            ("Project Understanding & Workplan", "phased_approach", "Phased workplan tied to the client's goals."),
            ("Benefits to Client", "value_proposition", ""),
            (
                "Key Team Members",
                "team_profiles",
                "Project manager, communications lead and content strategist.",
            ),
            ("Budget", "hourly_breakdown", "Hours and rates per role and phase."),
            ("Compliance & Quality Assurance", "standards_commitment", ""),
            ("References", "client_testimonials", "At least three communications clients."),
        ],
    },
    ProjectType.FINANCIAL_MODELING: {
        "name": "Financial Modeling & Analysis Proposal",
        "sections": [
            ("Methodology & Approach", "analytical_methodology", ""),
            (
                "Team Expertise",
                "team_profiles",
                "Financial analyst, senior modeler and project manager.",
            ),
            ("Deliverables & Timeline", "deliverable_schedule", ""),
            ("Investment & Budget", "financial_breakdown", ""),
            ("References", "client_references", ""),
        ],
    },
}


def build_default_templates() -> List[TemplateRecord]:
    """Template records for every built-in project type."""
    templates = []
    for project_type, definition in DEFAULT_TEMPLATE_SECTIONS.items():
        sections = [
            TemplateSection(
                name=title,
                content=guidance or f"Default content for {title}",
                content_type=content_type,
                is_required=True,
                order=index,
            )
            for index, (title, content_type, guidance) in enumerate(definition["sections"], start=1)
        ]
        templates.append(TemplateRecord(
            name=definition["name"],
            description=f"Default {definition['name']} template",
            project_type=project_type,
            sections=sections,
            created_by=SYSTEM_USER,
            tags=["default", project_type.value],
        ))
    return templates


async def ensure_default_templates(db: DatabaseService) -> List[TemplateRecord]:
    """
    Return active templates, seeding the defaults first when none exist.

    Seeding is skipped for any default whose name is already taken.
    """
    existing = await db.list_templates(active_only=False)
    if existing:
        return [t for t in existing if t.is_active]

    logger.info("No templates found, seeding defaults")
    seeded = []
    for template in build_default_templates():
        if await db.get_template_by_name(template.name):
            continue
        created = await db.create_template(template)
        if created:
            seeded.append(created)

    logger.info(f"Seeded {len(seeded)} default templates")
    return seeded


def preview_template(template: TemplateRecord) -> Dict[str, Any]:
    """Outline of a template as shown before generating a proposal."""
    sections = template.ordered_sections()
    return {
        "id": template.id,
        "name": template.name,
        "project_type": template.project_type.value,
        "section_count": len(sections),
        "sections": [
            {
                "order": s.order,
                "name": s.name,
                "content_type": s.content_type,
                "is_required": s.is_required,
                "placeholders": [p.key for p in s.placeholders],
            }
            for s in sections
        ],
    }
