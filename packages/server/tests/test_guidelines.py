"""
Tests for the brand guidelines lifecycle.

Tests cover:
- Reading approved guidelines (200 / 202 / 404)
- Archive, approve (with reviewer edits) and update
- The upload pipeline: validation, text extraction, quota metering,
  AI extraction and rollback when the provider fails
"""

from __future__ import annotations

import uuid

import pytest
from sqlmodel import select

from app.core.ai import ExtractionError, ExtractionResult, get_extractor
from app.main import app as fastapi_app
from app.models.guidelines import BrandGuidelines
from app.models.quota import BrandQuota, QuotaTransaction
from conftest import auth_headers

BRAND_DOC = (
    "Acme speaks plainly and warmly. We write as a trusted friend, never as a salesperson. "
    "Primary colour is #FF5A1F. Headlines use Inter Bold. Avoid jargon; prefer everyday words."
).encode()


def _url(brand, suffix: str = "") -> str:
    return f"/api/v1/brands/{brand.id}/guidelines{suffix}"


class FakeExtractor:
    def __init__(self, configured: bool = True, error: Exception | None = None):
        self.configured = configured
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def extract(self, document_text: str, brand_name: str) -> ExtractionResult:
        self.calls.append((document_text, brand_name))
        if self.error is not None:
            raise self.error
        return ExtractionResult(
            voice={"personality": ["warm", "plain"], "tone": "friendly"},
            copy_guidelines={"dos": [{"rule": "Use everyday words"}]},
            visual_guidelines={"colors": {"primary": "#FF5A1F"}},
            messaging={"tagline": "Made simple"},
            model="test-model",
            tokens_used=321,
            raw={"voice": {"tone": "friendly"}},
        )


@pytest.fixture
def use_extractor():
    def install(extractor: FakeExtractor) -> FakeExtractor:
        fastapi_app.dependency_overrides[get_extractor] = lambda: extractor
        return extractor

    return install


@pytest.fixture
async def team(factory):
    brand = await factory.brand("Acme")
    owner = await factory.user("owner@acme.test", "Olive Owner")
    editor = await factory.user("editor@acme.test", "Eddie Editor")
    reviewer = await factory.user("reviewer@acme.test", "Rita Reviewer")
    await factory.member(owner, brand, "owner")
    await factory.member(editor, brand, "editor")
    await factory.member(reviewer, brand, "reviewer")
    return brand, owner, editor, reviewer


async def _guidelines(session, brand, status: str = "approved", **sections) -> BrandGuidelines:
    row = BrandGuidelines(brand_id=brand.id, status=status, **sections)
    session.add(row)
    await session.commit()
    return row


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestGetGuidelines:
    async def test_approved_guidelines(self, client, session, team):
        brand, owner, _, _ = team
        await _guidelines(session, brand, voice={"tone": "bold"})
        resp = await client.get(_url(brand), headers=auth_headers(owner))
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["guidelines"]["status"] == "approved"
        assert data["guidelines"]["voice"] == {"tone": "bold"}
        assert data["guidelines"]["brandId"] == str(brand.id)

    async def test_pending_guidelines_return_202(self, client, session, team):
        brand, _, _, reviewer = team
        await _guidelines(session, brand, status="pending_review")
        resp = await client.get(_url(brand), headers=auth_headers(reviewer))
        assert resp.status_code == 202
        assert resp.json() == {
            "success": False,
            "hasGuidelines": True,
            "status": "pending_review",
            "message": (
                "Guidelines exist but are in 'pending_review' status. Please approve them first."
            ),
        }

    async def test_no_guidelines_return_404(self, client, team):
        brand, owner, _, _ = team
        resp = await client.get(_url(brand), headers=auth_headers(owner))
        assert resp.status_code == 404
        assert resp.json()["hasGuidelines"] is False
        assert resp.json()["message"].startswith("No brand guidelines found")

    async def test_non_member_gets_404(self, client, factory, team):
        brand, _, _, _ = team
        outsider = await factory.user()
        resp = await client.get(_url(brand), headers=auth_headers(outsider))
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Brand not found"

    async def test_pending_review_endpoint(self, client, session, team):
        brand, _, editor, _ = team
        resp = await client.get(_url(brand, "/approve"), headers=auth_headers(editor))
        assert resp.status_code == 404
        assert resp.json()["detail"] == "No pending guidelines found for review"

        draft = await _guidelines(session, brand, status="draft")
        resp = await client.get(_url(brand, "/approve"), headers=auth_headers(editor))
        assert resp.status_code == 200
        assert resp.json()["guidelines"]["id"] == str(draft.id)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    async def test_archive(self, client, session, team):
        brand, owner, _, _ = team
        row = await _guidelines(session, brand)
        resp = await client.delete(_url(brand), headers=auth_headers(owner))
        assert resp.status_code == 200
        await session.refresh(row)
        assert row.status == "archived"

        resp = await client.delete(_url(brand), headers=auth_headers(owner))
        assert resp.status_code == 404
        assert resp.json()["detail"] == "No approved guidelines to archive"

    async def test_editor_cannot_archive(self, client, session, team):
        brand, _, editor, _ = team
        await _guidelines(session, brand)
        resp = await client.delete(_url(brand), headers=auth_headers(editor))
        assert resp.status_code == 403

    async def test_approve_with_modifications(self, client, session, team):
        brand, owner, _, _ = team
        row = await _guidelines(
            session, brand, status="pending_review", voice={"tone": "stiff"}, messaging={"tagline": "Old"}
        )
        resp = await client.post(
            _url(brand, "/approve"),
            json={"guidelinesId": str(row.id), "modifications": {"voice": {"tone": "relaxed"}}},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Brand guidelines approved and activated"
        assert data["guidelines"]["status"] == "approved"
        assert data["guidelines"]["voice"] == {"tone": "relaxed"}
        assert data["guidelines"]["messaging"] == {"tagline": "Old"}

        await session.refresh(row)
        assert row.approved_by == owner.id
        assert row.approved_at is not None

    async def test_approve_requires_id(self, client, team):
        brand, owner, _, _ = team
        resp = await client.post(_url(brand, "/approve"), json={}, headers=auth_headers(owner))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "guidelinesId is required"

    async def test_approve_unknown(self, client, team):
        brand, owner, _, _ = team
        resp = await client.post(
            _url(brand, "/approve"),
            json={"guidelinesId": str(uuid.uuid4())},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 404

    async def test_approve_other_brands_guidelines(self, client, session, factory, team):
        brand, owner, _, _ = team
        other_brand = await factory.brand("Globex")
        foreign = await _guidelines(session, other_brand, status="pending_review")
        resp = await client.post(
            _url(brand, "/approve"),
            json={"guidelinesId": str(foreign.id)},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 403

    async def test_approve_twice(self, client, session, team):
        brand, owner, _, _ = team
        row = await _guidelines(session, brand)
        resp = await client.post(
            _url(brand, "/approve"),
            json={"guidelinesId": str(row.id)},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Guidelines are already approved"

    async def test_update_approved(self, client, session, team):
        brand, owner, _, _ = team
        row = await _guidelines(session, brand, messaging={"tagline": "Old"})
        resp = await client.post(
            _url(brand, "/update"),
            json={"guidelines": {"messaging": {"tagline": "New"}}},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 200
        assert resp.json()["guidelines"]["messaging"] == {"tagline": "New"}
        await session.refresh(row)
        assert row.messaging == {"tagline": "New"}

    async def test_update_validation(self, client, session, team):
        brand, owner, _, _ = team
        resp = await client.post(_url(brand, "/update"), json={}, headers=auth_headers(owner))
        assert resp.status_code == 400

        await _guidelines(session, brand, status="pending_review")
        resp = await client.post(
            _url(brand, "/update"),
            json={"guidelines": {"voice": {}}},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Upload & extraction
# ---------------------------------------------------------------------------

class TestUpload:
    async def test_upload_extracts_for_review(self, client, session, factory, storage, use_extractor, team):
        brand, _, editor, _ = team
        quota = await factory.quota(brand)
        extractor = use_extractor(FakeExtractor())

        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("Brand Book.txt", BRAND_DOC, "text/plain")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "pending_review"
        assert data["message"] == "Guidelines extracted. Please review and approve them."
        assert data["filePath"].startswith(f"{brand.id}/documents/")
        assert data["filePath"].endswith(".txt")

        assert await storage.read("brand-documents", data["filePath"]) == BRAND_DOC
        assert extractor.calls == [(BRAND_DOC.decode(), "Acme")]

        row = await session.get(BrandGuidelines, uuid.UUID(data["guidelinesId"]))
        assert row.visual_guidelines == {"colors": {"primary": "#FF5A1F"}}
        assert row.extracted_by == editor.id
        assert row.source_document_path == f"brand-documents/{data['filePath']}"

        await session.refresh(quota)
        assert quota.prompt_tokens_used == (len(BRAND_DOC) + 3) // 4
        result = await session.execute(
            select(QuotaTransaction).where(QuotaTransaction.brand_id == brand.id)
        )
        assert result.scalar_one().description == "Guidelines extraction"

    async def test_reupload_replaces_approved_guidelines(
        self, client, session, factory, storage, use_extractor, team
    ):
        brand, owner, _, _ = team
        await factory.quota(brand)
        existing = await _guidelines(session, brand, voice={"tone": "old"})
        use_extractor(FakeExtractor())

        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("guide.md", BRAND_DOC, "application/octet-stream")},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 200
        assert resp.json()["guidelinesId"] == str(existing.id)
        await session.refresh(existing)
        assert existing.status == "pending_review"
        assert existing.voice["tone"] == "friendly"
        assert existing.approved_at is None

    async def test_extraction_failure_rolls_back(
        self, client, session, factory, storage, use_extractor, team
    ):
        brand, _, editor, _ = team
        await factory.quota(brand)
        use_extractor(FakeExtractor(error=ExtractionError("boom", details={"status": 500})))

        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("guide.txt", BRAND_DOC, "text/plain")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 502
        body = resp.json()
        assert body["error"]["code"] == "GENERATION_ERROR"
        assert body["details"] == {"status": 500}

        assert await storage.list("brand-documents", brand.id) == []
        result = await session.execute(
            select(BrandQuota.prompt_tokens_used).where(BrandQuota.brand_id == brand.id)
        )
        assert result.scalar_one() == 0
        result = await session.execute(
            select(BrandGuidelines).where(BrandGuidelines.brand_id == brand.id)
        )
        assert result.scalar_one_or_none() is None

    async def test_quota_exhausted(self, client, factory, storage, use_extractor, team):
        brand, _, editor, _ = team
        await factory.quota(brand, prompt_tokens_limit=10)
        extractor = use_extractor(FakeExtractor())

        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("guide.txt", BRAND_DOC, "text/plain")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 402
        assert extractor.calls == []
        assert await storage.list("brand-documents", brand.id) == []

    async def test_missing_file(self, client, storage, use_extractor, team):
        brand, _, editor, _ = team
        use_extractor(FakeExtractor())
        resp = await client.post(
            _url(brand, "/upload"),
            files={"attachment": ("guide.txt", BRAND_DOC, "text/plain")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "MISSING_FILE"

    async def test_unsupported_type(self, client, storage, use_extractor, team):
        brand, _, editor, _ = team
        use_extractor(FakeExtractor())
        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("setup.exe", b"MZ", "application/x-msdownload")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_FILE_TYPE"

    async def test_extractor_not_configured(self, client, storage, use_extractor, team):
        brand, _, editor, _ = team
        use_extractor(FakeExtractor(configured=False))
        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("guide.txt", BRAND_DOC, "text/plain")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "CONFIG_ERROR"

    async def test_document_too_short(self, client, storage, use_extractor, team):
        brand, _, editor, _ = team
        use_extractor(FakeExtractor())
        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("guide.txt", b"Be nice.", "text/plain")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_INPUT"
        assert resp.json()["details"]["chars"] == 8

    async def test_unreadable_docx(self, client, storage, use_extractor, team):
        brand, _, editor, _ = team
        use_extractor(FakeExtractor())
        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("guide.docx", b"not a zip archive", "application/octet-stream")},
            headers=auth_headers(editor),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_INPUT"

    async def test_reviewer_cannot_upload(self, client, storage, use_extractor, team):
        brand, _, _, reviewer = team
        use_extractor(FakeExtractor())
        resp = await client.post(
            _url(brand, "/upload"),
            files={"file": ("guide.txt", BRAND_DOC, "text/plain")},
            headers=auth_headers(reviewer),
        )
        assert resp.status_code == 403
