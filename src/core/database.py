"""Supabase database service for the RFP Proposal Engine."""

import logging
import uuid
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime
from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from src.core.config import get_settings
from src.models import (
    RFPRecord,
    ProposalRecord,
    TemplateRecord,
    Company,
    TeamMember,
    ProjectReference,
    PastProject,
    CanvaConnection,
    CanvaAssetLink,
    CanvaCompanyTemplate,
    CanvaProposalDesign,
    SectionRecord,
)
from src.models.proposal import sections_to_rows

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.utcnow().isoformat()


def new_id(prefix: str = "") -> str:
    """Generate a record identifier."""
    return f"{prefix}{uuid.uuid4().hex}"


class DatabaseService:
    """
    Service for Supabase database operations.

    One table per record type. Methods log failures and return None, False
    or an empty list instead of raising, so route handlers decide whether a
    missing record is a 404 or a 500.
    """

    RFPS = "rfps"
    PROPOSALS = "proposals"
    TEMPLATES = "templates"
    COMPANIES = "companies"
    TEAM_MEMBERS = "team_members"
    REFERENCES = "project_references"
    PAST_PROJECTS = "past_projects"
    CANVA_CONNECTIONS = "canva_connections"
    CANVA_ASSET_LINKS = "canva_asset_links"
    CANVA_COMPANY_TEMPLATES = "canva_company_templates"
    CANVA_PROPOSAL_DESIGNS = "canva_proposal_designs"

    def __init__(self):
        """Initialize Supabase client."""
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        """Lazy initialization of Supabase client."""
        if self._client is None:
            settings = get_settings()
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                raise ValueError("Supabase credentials not configured")

            self._client = create_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_KEY,
                options=ClientOptions(
                    postgrest_client_timeout=30,
                    storage_client_timeout=30
                )
            )
            logger.info("Supabase client initialized")
        return self._client

    # ===========================================
    # Table Helpers
    # ===========================================

    async def _insert(self, table: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            data.setdefault("id", new_id())
            data.setdefault("created_at", _now())
            data.setdefault("updated_at", data["created_at"])

            response = self.client.table(table).insert(data).execute()

            if response.data:
                logger.info(f"Created {table} record: {response.data[0].get('id')}")
                return response.data[0]

            logger.error(f"Insert into {table} returned no data")
            return None

        except Exception as e:
            logger.error(f"Failed to insert into {table}: {e}")
            return None

    async def _get(self, table: str, **filters: Any) -> Optional[Dict[str, Any]]:
        try:
            query = self.client.table(table).select("*")
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.limit(1).execute()

            if response.data:
                return response.data[0]
            return None

        except Exception as e:
            logger.error(f"Failed to read {table} {filters}: {e}")
            return None

    async def _list(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: str = "created_at",
        desc: bool = True,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        try:
            query = self.client.table(table).select("*")
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            response = query.order(order, desc=desc).limit(limit).execute()
            return response.data or []

        except Exception as e:
            logger.error(f"Failed to list {table}: {e}")
            return []

    async def _update(
        self,
        table: str,
        record_id: str,
        updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        try:
            updates["updated_at"] = _now()

            response = (
                self.client.table(table)
                .update(updates)
                .eq("id", record_id)
                .execute()
            )

            if response.data:
                logger.info(f"Updated {table} {record_id}: {list(updates.keys())}")
                return response.data[0]

            logger.warning(f"Update returned no data for {table} {record_id}")
            return None

        except Exception as e:
            logger.error(f"Failed to update {table} {record_id}: {e}")
            return None

    async def _upsert(
        self,
        table: str,
        data: Dict[str, Any],
        on_conflict: str
    ) -> Optional[Dict[str, Any]]:
        try:
            data["updated_at"] = _now()

            response = (
                self.client.table(table)
                .upsert(data, on_conflict=on_conflict)
                .execute()
            )

            if response.data:
                return response.data[0]

            logger.error(f"Upsert into {table} returned no data")
            return None

        except Exception as e:
            logger.error(f"Failed to upsert into {table}: {e}")
            return None

    async def _delete(self, table: str, **filters: Any) -> bool:
        try:
            query = self.client.table(table).delete()
            for column, value in filters.items():
                query = query.eq(column, value)
            query.execute()
            logger.info(f"Deleted from {table}: {filters}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete from {table} {filters}: {e}")
            return False

    # ===========================================
    # RFPs
    # ===========================================

    async def create_rfp(self, data: Dict[str, Any]) -> Optional[RFPRecord]:
        """Create an RFP record."""
        row = await self._insert(self.RFPS, data)
        return RFPRecord(**row) if row else None

    async def get_rfp(self, rfp_id: str) -> Optional[RFPRecord]:
        """Fetch RFP by ID."""
        row = await self._get(self.RFPS, id=rfp_id)
        if row is None:
            logger.warning(f"RFP not found: {rfp_id}")
            return None
        return RFPRecord(**row)

    async def list_rfps(self, page: int = 1, limit: int = 10) -> Tuple[List[RFPRecord], int]:
        """Fetch one page of RFPs, newest first, with the total count."""
        try:
            start = (page - 1) * limit
            response = (
                self.client.table(self.RFPS)
                .select("*", count="exact")
                .order("created_at", desc=True)
                .range(start, start + limit - 1)
                .execute()
            )
            records = [RFPRecord(**row) for row in (response.data or [])]
            return records, response.count or 0

        except Exception as e:
            logger.error(f"Failed to list RFPs: {e}")
            return [], 0

    async def search_rfps(self, query: str, limit: int = 20) -> List[RFPRecord]:
        """Case-insensitive search over title, client and scope."""
        try:
            pattern = f"%{query}%"
            response = (
                self.client.table(self.RFPS)
                .select("*")
                .or_(
                    f"title.ilike.{pattern},"
                    f"client_name.ilike.{pattern},"
                    f"project_scope.ilike.{pattern}"
                )
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
            return [RFPRecord(**row) for row in (response.data or [])]

        except Exception as e:
            logger.error(f"Failed to search RFPs for '{query}': {e}")
            return []

    async def update_rfp(self, rfp_id: str, updates: Dict[str, Any]) -> Optional[RFPRecord]:
        """Update RFP with partial data."""
        row = await self._update(self.RFPS, rfp_id, updates)
        return RFPRecord(**row) if row else None

    async def delete_rfp(self, rfp_id: str) -> bool:
        return await self._delete(self.RFPS, id=rfp_id)

    # ===========================================
    # Proposals
    # ===========================================

    async def create_proposal(self, proposal: ProposalRecord) -> Optional[ProposalRecord]:
        """Create a proposal, storing sections as ordered rows."""
        data = proposal.model_dump(mode="json", exclude_none=True, exclude={"sections"})
        data["sections"] = proposal.sections_to_rows()
        row = await self._insert(self.PROPOSALS, data)
        return ProposalRecord(**row) if row else None

    async def get_proposal(self, proposal_id: str) -> Optional[ProposalRecord]:
        """Fetch proposal by ID."""
        row = await self._get(self.PROPOSALS, id=proposal_id)
        if row is None:
            logger.warning(f"Proposal not found: {proposal_id}")
            return None
        return ProposalRecord(**row)

    async def list_proposals(
        self,
        rfp_id: Optional[str] = None,
        limit: int = 100
    ) -> List[ProposalRecord]:
        """Fetch proposals, optionally only those answering one RFP."""
        filters = {"rfp_id": rfp_id} if rfp_id else None
        rows = await self._list(self.PROPOSALS, filters=filters, limit=limit)
        return [ProposalRecord(**row) for row in rows]

    async def update_proposal(
        self,
        proposal_id: str,
        updates: Dict[str, Any]
    ) -> Optional[ProposalRecord]:
        """Update proposal with partial data. Section maps are stored as rows."""
        sections = updates.get("sections")
        if isinstance(sections, dict):
            updates["sections"] = sections_to_rows({
                name: record if isinstance(record, SectionRecord) else SectionRecord(**record)
                for name, record in sections.items()
            })
        row = await self._update(self.PROPOSALS, proposal_id, updates)
        return ProposalRecord(**row) if row else None

    async def delete_proposal(self, proposal_id: str) -> bool:
        return await self._delete(self.PROPOSALS, id=proposal_id)

    # ===========================================
    # Templates
    # ===========================================

    async def list_templates(self, active_only: bool = True) -> List[TemplateRecord]:
        filters = {"is_active": True} if active_only else None
        rows = await self._list(self.TEMPLATES, filters=filters, order="name", desc=False)
        return [TemplateRecord(**row) for row in rows]

    async def get_template(self, template_id: str) -> Optional[TemplateRecord]:
        row = await self._get(self.TEMPLATES, id=template_id)
        return TemplateRecord(**row) if row else None

    async def get_template_by_name(self, name: str) -> Optional[TemplateRecord]:
        row = await self._get(self.TEMPLATES, name=name)
        return TemplateRecord(**row) if row else None

    async def create_template(self, template: TemplateRecord) -> Optional[TemplateRecord]:
        data = template.model_dump(mode="json", exclude_none=True)
        row = await self._insert(self.TEMPLATES, data)
        return TemplateRecord(**row) if row else None

    async def update_template(
        self,
        template_id: str,
        updates: Dict[str, Any]
    ) -> Optional[TemplateRecord]:
        row = await self._update(self.TEMPLATES, template_id, updates)
        return TemplateRecord(**row) if row else None

    async def delete_template(self, template_id: str) -> bool:
        return await self._delete(self.TEMPLATES, id=template_id)

    # ===========================================
    # Content Library
    # ===========================================

    async def get_company(self, company_id: str) -> Optional[Company]:
        row = await self._get(self.COMPANIES, id=company_id)
        return Company(**row) if row else None

    async def get_latest_company(self) -> Optional[Company]:
        """Most recently created company profile."""
        rows = await self._list(self.COMPANIES, limit=1)
        return Company(**rows[0]) if rows else None

    async def upsert_company(self, data: Dict[str, Any]) -> Optional[Company]:
        data.setdefault("id", new_id("company_"))
        row = await self._upsert(self.COMPANIES, data, on_conflict="id")
        return Company(**row) if row else None

    async def list_team_members(self, active_only: bool = True) -> List[TeamMember]:
        filters = {"is_active": True} if active_only else None
        rows = await self._list(self.TEAM_MEMBERS, filters=filters, order="created_at", desc=False)
        return [TeamMember(**row) for row in rows]

    async def get_team_member(self, member_id: str) -> Optional[TeamMember]:
        row = await self._get(self.TEAM_MEMBERS, id=member_id)
        return TeamMember(**row) if row else None

    async def create_team_member(self, data: Dict[str, Any]) -> Optional[TeamMember]:
        data.setdefault("id", new_id("member_"))
        row = await self._insert(self.TEAM_MEMBERS, data)
        return TeamMember(**row) if row else None

    async def update_team_member(
        self,
        member_id: str,
        updates: Dict[str, Any]
    ) -> Optional[TeamMember]:
        row = await self._update(self.TEAM_MEMBERS, member_id, updates)
        return TeamMember(**row) if row else None

    async def list_references(self, active_only: bool = True) -> List[ProjectReference]:
        filters = {"is_active": True} if active_only else None
        rows = await self._list(self.REFERENCES, filters=filters, order="created_at", desc=False)
        return [ProjectReference(**row) for row in rows]

    async def get_reference(self, reference_id: str) -> Optional[ProjectReference]:
        row = await self._get(self.REFERENCES, id=reference_id)
        return ProjectReference(**row) if row else None

    async def create_reference(self, data: Dict[str, Any]) -> Optional[ProjectReference]:
        row = await self._insert(self.REFERENCES, data)
        return ProjectReference(**row) if row else None

    async def update_reference(
        self,
        reference_id: str,
        updates: Dict[str, Any]
    ) -> Optional[ProjectReference]:
        row = await self._update(self.REFERENCES, reference_id, updates)
        return ProjectReference(**row) if row else None

    async def list_past_projects(
        self,
        project_type: Optional[str] = None,
        industry: Optional[str] = None,
        limit: int = 20
    ) -> List[PastProject]:
        """Active public projects, newest first."""
        filters: Dict[str, Any] = {"is_active": True, "is_public": True}
        if project_type:
            filters["project_type"] = project_type
        if industry:
            filters["industry"] = industry
        rows = await self._list(self.PAST_PROJECTS, filters=filters, limit=limit)
        return [PastProject(**row) for row in rows]

    async def get_past_project(self, project_id: str) -> Optional[PastProject]:
        row = await self._get(self.PAST_PROJECTS, id=project_id)
        return PastProject(**row) if row else None

    async def create_past_project(self, data: Dict[str, Any]) -> Optional[PastProject]:
        data.setdefault("id", new_id("project_"))
        row = await self._insert(self.PAST_PROJECTS, data)
        return PastProject(**row) if row else None

    async def update_past_project(
        self,
        project_id: str,
        updates: Dict[str, Any]
    ) -> Optional[PastProject]:
        row = await self._update(self.PAST_PROJECTS, project_id, updates)
        return PastProject(**row) if row else None

    # ===========================================
    # Canva Records
    # ===========================================

    async def get_canva_connection(self, user_id: str) -> Optional[CanvaConnection]:
        row = await self._get(self.CANVA_CONNECTIONS, user_id=user_id)
        return CanvaConnection(**row) if row else None

    async def upsert_canva_connection(self, data: Dict[str, Any]) -> Optional[CanvaConnection]:
        row = await self._upsert(self.CANVA_CONNECTIONS, data, on_conflict="user_id")
        return CanvaConnection(**row) if row else None

    async def delete_canva_connection(self, user_id: str) -> bool:
        return await self._delete(self.CANVA_CONNECTIONS, user_id=user_id)

    async def get_asset_link(
        self,
        owner_type: str,
        owner_id: str,
        kind: str
    ) -> Optional[CanvaAssetLink]:
        row = await self._get(
            self.CANVA_ASSET_LINKS, owner_type=owner_type, owner_id=owner_id, kind=kind
        )
        return CanvaAssetLink(**row) if row else None

    async def upsert_asset_link(self, link: CanvaAssetLink) -> Optional[CanvaAssetLink]:
        data = link.model_dump(mode="json", exclude_none=True)
        row = await self._upsert(
            self.CANVA_ASSET_LINKS, data, on_conflict="owner_type,owner_id,kind"
        )
        return CanvaAssetLink(**row) if row else None

    async def get_company_template(self, company_id: str) -> Optional[CanvaCompanyTemplate]:
        row = await self._get(self.CANVA_COMPANY_TEMPLATES, company_id=company_id)
        return CanvaCompanyTemplate(**row) if row else None

    async def upsert_company_template(
        self,
        binding: CanvaCompanyTemplate
    ) -> Optional[CanvaCompanyTemplate]:
        data = binding.model_dump(mode="json", exclude_none=True)
        row = await self._upsert(self.CANVA_COMPANY_TEMPLATES, data, on_conflict="company_id")
        return CanvaCompanyTemplate(**row) if row else None

    async def get_proposal_design(
        self,
        proposal_id: str,
        company_id: str,
        brand_template_id: str
    ) -> Optional[CanvaProposalDesign]:
        row = await self._get(
            self.CANVA_PROPOSAL_DESIGNS,
            proposal_id=proposal_id,
            company_id=company_id,
            brand_template_id=brand_template_id,
        )
        return CanvaProposalDesign(**row) if row else None

    async def upsert_proposal_design(
        self,
        design: CanvaProposalDesign
    ) -> Optional[CanvaProposalDesign]:
        data = design.model_dump(mode="json", exclude_none=True)
        row = await self._upsert(
            self.CANVA_PROPOSAL_DESIGNS,
            data,
            on_conflict="proposal_id,company_id,brand_template_id"
        )
        return CanvaProposalDesign(**row) if row else None

    async def delete_proposal_design(
        self,
        proposal_id: str,
        company_id: str,
        brand_template_id: str
    ) -> bool:
        return await self._delete(
            self.CANVA_PROPOSAL_DESIGNS,
            proposal_id=proposal_id,
            company_id=company_id,
            brand_template_id=brand_template_id,
        )

    # ===========================================
    # Health Check
    # ===========================================

    async def health_check(self) -> bool:
        """Check database connectivity."""
        try:
            self.client.table(self.RFPS).select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


# Singleton instance
db_service = DatabaseService()
