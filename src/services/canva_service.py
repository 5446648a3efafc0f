"""
Canva service - connections, asset links, template bindings and the
per-proposal design cache.

A generated design is reused while its record is at least as new as the
proposal it was built from. Any proposal save invalidates it.
"""

import asyncio
import base64
import binascii
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List, Tuple
from urllib.parse import urlencode

from src.core.config import get_settings
from src.core.database import DatabaseService, db_service
from src.core.security import (
    create_state_token,
    decode_state_token,
    encrypt_secret,
    decrypt_secret,
)
from src.integrations.canva import CanvaClient, CanvaError, canva_client, poll_job
from src.models import (
    AssetKind,
    AssetOwnerType,
    CanvaAssetLink,
    CanvaCompanyTemplate,
    CanvaConnection,
    CanvaProposalDesign,
    DatasetDiagnosis,
    DatasetField,
    FieldMapping,
    ProposalRecord,
)
from src.services.content_library import ContentLibrary
from src.services.dataset_mapper import (
    MappingContext,
    build_dataset_values,
    collect_selected_ids,
    diagnose_dataset_values,
)

logger = logging.getLogger(__name__)

TOKEN_REFRESH_MARGIN = timedelta(seconds=60)
TEMP_URL_LIFETIME = timedelta(days=29)
AUTOFILL_TIMEOUT_SECONDS = 120.0
EXPORT_TIMEOUT_SECONDS = 180.0
ASSET_UPLOAD_TIMEOUT_SECONDS = 120.0
DEFAULT_RETURN_PATH = "/integrations/canva"


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so stored and fresh values compare."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_scopes(raw: Any) -> List[str]:
    if isinstance(raw, str):
        return [s for s in raw.split() if s]
    if isinstance(raw, list):
        return [str(s) for s in raw]
    return []


def decode_base64_image(data: str) -> bytes:
    """Accept raw base64 or a data: URL."""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CanvaError("upload_failed", "Invalid base64 image data", status_code=400) from e
    if not decoded:
        raise CanvaError("upload_failed", "Invalid base64 image data", status_code=400)
    return decoded


def is_design_fresh(design: Optional[CanvaProposalDesign], proposal: ProposalRecord) -> bool:
    """A cached design is fresh while it is at least as new as the proposal."""
    if design is None or not design.design_id or design.last_proposal_updated_at is None:
        return False
    proposal_updated = _utc(proposal.updated_at)
    if proposal_updated is None:
        return False
    return _utc(design.last_proposal_updated_at) >= proposal_updated


def design_payload(design: CanvaProposalDesign, cached: bool) -> Dict[str, Any]:
    """Response body describing a (possibly cached) design."""
    return {
        "ok": True,
        "cached": cached,
        "brand_template_id": design.brand_template_id,
        "design": {
            "id": design.design_id,
            "url": design.design_url or "",
            "urls": {
                "edit_url": design.edit_url or "",
                "view_url": design.view_url or "",
            },
        },
        "meta": {
            "last_generated_at": design.last_generated_at,
            "last_proposal_updated_at": design.last_proposal_updated_at,
        },
    }


class CanvaService:
    """Orchestrates the Canva client, stored records and the dataset mapper."""

    def __init__(
        self,
        client: Optional[CanvaClient] = None,
        db: Optional[DatabaseService] = None
    ):
        self.client = client or canva_client
        self.db = db or db_service
        self.library = ContentLibrary(self.db)

    # ===========================================
    # Connections
    # ===========================================

    async def store_token(self, user_id: str, payload: Dict[str, Any]) -> Optional[CanvaConnection]:
        """Persist a token response, encrypting both tokens."""
        expires_in = int(payload.get("expires_in") or 0)
        expires_at = _now() + timedelta(seconds=expires_in) if expires_in else None

        return await self.db.upsert_canva_connection({
            "user_id": user_id,
            "access_token_enc": encrypt_secret(payload.get("access_token")),
            "refresh_token_enc": encrypt_secret(payload.get("refresh_token")),
            "token_type": payload.get("token_type") or "bearer",
            "scopes": _parse_scopes(payload.get("scope") or payload.get("scopes")),
            "expires_at": expires_at.isoformat() if expires_at else None,
        })

    async def get_valid_access_token(self, user_id: str) -> str:
        """
        Access token for a user, refreshed when it expires within a minute.

        Raises:
            CanvaError: not_connected when no connection exists,
                needs_reconnect when it cannot be refreshed
        """
        connection = await self.db.get_canva_connection(user_id)
        if connection is None:
            raise CanvaError("not_connected", "Canva is not connected for this user", status_code=400)

        access_token = decrypt_secret(connection.access_token_enc)
        refresh_token = decrypt_secret(connection.refresh_token_enc)

        expires_at = _utc(connection.expires_at)
        expiring = expires_at is not None and expires_at - _now() < TOKEN_REFRESH_MARGIN
        if access_token and not expiring:
            return access_token

        if not refresh_token:
            raise CanvaError(
                "needs_reconnect",
                "Canva token expired and no refresh token available",
                status_code=401,
            )

        logger.info(f"Refreshing Canva token for user {user_id}")
        refreshed = await self.client.refresh_access_token(refresh_token)
        # Canva may omit the refresh token on refresh
        refreshed.setdefault("refresh_token", refresh_token)
        await self.store_token(user_id, refreshed)

        token = refreshed.get("access_token")
        if not token:
            raise CanvaError("needs_reconnect", "Canva refresh returned no access token", status_code=401)
        return token

    async def get_status(self, user_id: str) -> Dict[str, Any]:
        connection = await self.db.get_canva_connection(user_id)
        if connection is None:
            return {"connected": False, "connection": None}
        return {
            "connected": True,
            "connection": connection.model_dump(
                mode="json", exclude={"access_token_enc", "refresh_token_enc"}
            ),
        }

    async def disconnect(self, user_id: str) -> bool:
        return await self.db.delete_canva_connection(user_id)

    def connect_url(self, user_id: str, return_to: Optional[str] = None) -> str:
        state = create_state_token(user_id, return_to or DEFAULT_RETURN_PATH)
        return self.client.build_authorize_url(state)

    async def handle_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None
    ) -> str:
        """Complete the OAuth flow and return the frontend URL to redirect to."""
        base = get_settings().FRONTEND_BASE_URL.rstrip("/")
        failure = f"{base}{DEFAULT_RETURN_PATH}?"

        if error:
            return failure + urlencode({"error": error})
        if not code or not state:
            return failure + "error=missing_code"

        decoded = decode_state_token(state)
        if not decoded:
            return failure + "error=invalid_state"

        user_id = decoded.get("user_id")
        if not user_id:
            return failure + "error=missing_user"

        try:
            token = await self.client.exchange_code_for_token(code)
            await self.store_token(user_id, token)
        except CanvaError as e:
            logger.error(f"Canva callback failed for user {user_id}: {e.message}")
            return failure + "error=callback_failed"

        logger.info(f"Canva connected for user {user_id}")
        return f"{base}{decoded.get('return_to') or DEFAULT_RETURN_PATH}?connected=1"

    # ===========================================
    # Brand Templates and Mappings
    # ===========================================

    async def list_brand_templates(self, user_id: str, continuation: Optional[str] = None) -> Dict[str, Any]:
        token = await self.get_valid_access_token(user_id)
        return await self.client.list_brand_templates(token, continuation)

    async def get_dataset(self, user_id: str, brand_template_id: str) -> Dict[str, DatasetField]:
        token = await self.get_valid_access_token(user_id)
        raw = await self.client.get_brand_template_dataset(token, brand_template_id)
        return {
            key: DatasetField(type=str((value or {}).get("type") or "text"))
            for key, value in raw.items()
        }

    async def get_company_mapping(self, company_id: str) -> Optional[CanvaCompanyTemplate]:
        return await self.db.get_company_template(company_id)

    async def save_company_mapping(
        self,
        company_id: str,
        brand_template_id: str,
        field_mapping: Dict[str, FieldMapping]
    ) -> Optional[CanvaCompanyTemplate]:
        binding = CanvaCompanyTemplate(
            company_id=company_id,
            brand_template_id=brand_template_id,
            field_mapping=field_mapping,
        )
        logger.info(
            f"Binding brand template {brand_template_id} to company {company_id} "
            f"({len(field_mapping)} mapped fields)"
        )
        return await self.db.upsert_company_template(binding)

    # ===========================================
    # Assets
    # ===========================================

    async def upload_asset_from_url(self, user_id: str, url: str, name: str) -> Dict[str, Any]:
        token = await self.get_valid_access_token(user_id)
        job = await self.client.create_url_asset_upload_job(token, url, name)
        final = await poll_job(
            lambda: self.client.get_url_asset_upload_job(token, job.get("id")),
            timeout=ASSET_UPLOAD_TIMEOUT_SECONDS,
        )
        return self._asset_from_job(final)

    async def upload_asset_bytes(self, user_id: str, data: bytes, name: str) -> Dict[str, Any]:
        token = await self.get_valid_access_token(user_id)
        job = await self.client.create_asset_upload_job(token, data, name)
        final = await poll_job(
            lambda: self.client.get_asset_upload_job(token, job.get("id")),
            timeout=ASSET_UPLOAD_TIMEOUT_SECONDS,
        )
        return self._asset_from_job(final)

    async def upload_asset_base64(self, user_id: str, data_base64: str, name: str) -> Dict[str, Any]:
        """Upload an unowned image; nothing is linked."""
        return await self.upload_asset_bytes(user_id, decode_base64_image(data_base64), name)

    @staticmethod
    def _asset_from_job(job: Dict[str, Any]) -> Dict[str, Any]:
        asset = job.get("asset") or {}
        if job.get("status") != "success" or not asset.get("id"):
            raise CanvaError(
                "upload_failed",
                "Canva asset upload failed",
                status_code=400,
                details=job.get("error"),
            )
        return asset

    async def link_asset(
        self,
        owner_type: AssetOwnerType,
        owner_id: str,
        kind: AssetKind,
        asset: Dict[str, Any],
        source_url: Optional[str] = None
    ) -> Optional[CanvaAssetLink]:
        link = CanvaAssetLink(
            owner_type=owner_type,
            owner_id=owner_id,
            kind=kind,
            asset_id=str(asset["id"]),
            name=asset.get("name"),
            source_url=source_url,
            meta=asset,
        )
        return await self.db.upsert_asset_link(link)

    async def get_company_logo(self, company_id: str) -> Optional[CanvaAssetLink]:
        return await self.db.get_asset_link(AssetOwnerType.COMPANY.value, company_id, AssetKind.LOGO.value)

    async def get_headshot(self, member_id: str) -> Optional[CanvaAssetLink]:
        return await self.db.get_asset_link(AssetOwnerType.TEAM_MEMBER.value, member_id, AssetKind.HEADSHOT.value)

    async def upload_company_logo(
        self,
        user_id: str,
        company_id: str,
        data_base64: str,
        name: Optional[str] = None
    ) -> Dict[str, Any]:
        company = await self.db.get_company(company_id)
        if company is None:
            raise CanvaError("not_found", "Company not found", status_code=404)

        asset = await self.upload_asset_bytes(
            user_id, decode_base64_image(data_base64), name or f"{company.name} logo"
        )
        link = await self.link_asset(AssetOwnerType.COMPANY, company_id, AssetKind.LOGO, asset)
        return {"ok": True, "asset": asset, "link": link}

    async def upload_headshot(
        self,
        user_id: str,
        member_id: str,
        data_base64: str,
        name: Optional[str] = None
    ) -> Dict[str, Any]:
        member = await self.db.get_team_member(member_id)
        if member is None:
            raise CanvaError("not_found", "Team member not found", status_code=404)

        asset = await self.upload_asset_bytes(
            user_id, decode_base64_image(data_base64), name or f"{member.name_with_credentials} headshot"
        )
        link = await self.link_asset(AssetOwnerType.TEAM_MEMBER, member_id, AssetKind.HEADSHOT, asset)
        return {"ok": True, "asset": asset, "link": link}

    # ===========================================
    # Proposal Designs
    # ===========================================

    async def _load_binding(self, proposal_id: str) -> Tuple[ProposalRecord, CanvaCompanyTemplate]:
        proposal = await self.db.get_proposal(proposal_id)
        if proposal is None:
            raise CanvaError("not_found", "Proposal not found", status_code=404)
        if not proposal.company_id:
            raise CanvaError(
                "missing_company",
                "Proposal has no company_id; select a company/branding first.",
                status_code=400,
            )

        binding = await self.db.get_company_template(proposal.company_id)
        if binding is None:
            raise CanvaError(
                "no_template",
                "No Canva template configured for this company.",
                status_code=400,
            )
        return proposal, binding

    async def build_context(self, proposal: ProposalRecord) -> MappingContext:
        """Gather the proposal's RFP, company, selections and asset links."""
        team_ids, reference_ids = collect_selected_ids(proposal)

        rfp, company, members, references, logo = await asyncio.gather(
            self.db.get_rfp(proposal.rfp_id),
            self.db.get_company(proposal.company_id),
            self.library.get_team_members_by_ids(team_ids),
            self.library.get_references_by_ids(reference_ids),
            self.db.get_asset_link(AssetOwnerType.COMPANY.value, proposal.company_id, AssetKind.LOGO.value),
        )

        links = await asyncio.gather(*[
            self.db.get_asset_link(AssetOwnerType.TEAM_MEMBER.value, member.id, AssetKind.HEADSHOT.value)
            for member in members
        ])
        headshots = {link.owner_id: link.asset_id for link in links if link}

        return MappingContext(
            proposal=proposal,
            rfp=rfp,
            company=company,
            logo_asset_id=logo.asset_id if logo else None,
            team_members=members,
            headshots=headshots,
            references=references,
        )

    async def ensure_design_for_proposal(
        self,
        user_id: str,
        proposal_id: str,
        force: bool = False
    ) -> Dict[str, Any]:
        """
        Return the proposal's Canva design, generating it when the cache is stale.

        Args:
            user_id: Owner of the Canva connection
            proposal_id: Proposal to render
            force: Drop the cached design and regenerate

        Returns:
            Design payload with 'cached' telling whether Canva was called
        """
        proposal, binding = await self._load_binding(proposal_id)
        company_id = proposal.company_id

        if force:
            await self.db.delete_proposal_design(proposal.id, company_id, binding.brand_template_id)
            existing = None
        else:
            existing = await self.db.get_proposal_design(
                proposal.id, company_id, binding.brand_template_id
            )

        if is_design_fresh(existing, proposal):
            logger.info(f"Using cached Canva design {existing.design_id} for proposal {proposal.id}")
            return design_payload(existing, cached=True)

        token = await self.get_valid_access_token(user_id)
        dataset = await self.get_dataset(user_id, binding.brand_template_id)
        ctx = await self.build_context(proposal)
        values = build_dataset_values(dataset, binding.field_mapping, ctx)

        title = proposal.title or (f"Proposal for {ctx.rfp.title}" if ctx.rfp else "Proposal")
        job = await self.client.create_autofill_job(
            token,
            binding.brand_template_id,
            {key: value.model_dump() for key, value in values.items()},
            title=title,
        )
        final = await poll_job(
            lambda: self.client.get_autofill_job(token, job.get("id")),
            timeout=AUTOFILL_TIMEOUT_SECONDS,
        )
        if final.get("status") != "success":
            raise CanvaError(
                "autofill_failed",
                "Canva autofill failed",
                status_code=500,
                details=final.get("error"),
            )

        summary = (final.get("result") or {}).get("design") or {}
        if not summary.get("id"):
            raise CanvaError("no_design_id", "No design ID returned from Canva", status_code=500)

        generated_at = _now()
        urls = summary.get("urls") or {}
        design = CanvaProposalDesign(
            proposal_id=proposal.id,
            company_id=company_id,
            brand_template_id=binding.brand_template_id,
            design_id=summary["id"],
            design_url=summary.get("url") or "",
            edit_url=urls.get("edit_url") or "",
            view_url=urls.get("view_url") or "",
            temp_urls_expire_at=generated_at + TEMP_URL_LIFETIME,
            last_proposal_updated_at=_utc(proposal.updated_at) or generated_at,
            last_generated_at=generated_at,
        )
        stored = await self.db.upsert_proposal_design(design)

        logger.info(f"Generated Canva design {design.design_id} for proposal {proposal.id}")
        return design_payload(stored or design, cached=False)

    async def export_pdf(self, user_id: str, proposal_id: str) -> Tuple[bytes, str]:
        """Export the proposal's design as PDF; returns (bytes, filename)."""
        ensured = await self.ensure_design_for_proposal(user_id, proposal_id)
        design_id = ensured["design"]["id"]

        token = await self.get_valid_access_token(user_id)
        job = await self.client.create_export_job(token, design_id, "pdf")
        final = await poll_job(
            lambda: self.client.get_export_job(token, job.get("id")),
            timeout=EXPORT_TIMEOUT_SECONDS,
        )
        if final.get("status") != "success":
            raise CanvaError(
                "export_failed", "Canva export failed", status_code=500, details=final.get("error")
            )

        urls = final.get("urls") or []
        if not urls:
            raise CanvaError("export_failed", "No download URLs returned from Canva", status_code=500)

        data = await self.client.download(urls[0])
        proposal = await self.db.get_proposal(proposal_id)
        name = "_".join(((proposal.title if proposal else "") or "proposal").split())
        return data, f"{name}_canva.pdf"

    async def validate(self, user_id: str, proposal_id: str) -> Dict[str, Any]:
        """Explain how the bound template would be filled, without creating a design."""
        proposal, binding = await self._load_binding(proposal_id)
        dataset = await self.get_dataset(user_id, binding.brand_template_id)
        ctx = await self.build_context(proposal)
        diagnosis: DatasetDiagnosis = diagnose_dataset_values(dataset, binding.field_mapping, ctx)

        return {
            "ok": True,
            "brand_template_id": binding.brand_template_id,
            **diagnosis.model_dump(),
        }


# Singleton instance
canva_service = CanvaService()
