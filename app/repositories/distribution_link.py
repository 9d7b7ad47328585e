from database.connection import get_db, utcnow_iso, with_retry


class DistributionLinkRepository:

    @staticmethod
    @with_retry()
    def create(pass_id: str, slug: str) -> dict | None:
        db = get_db()
        result = db.table("pass_distribution_links").insert({
            "pass_id": pass_id,
            "slug": slug,
            "status": "active",
            "accessed_count": 0,
        }).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_slug(slug: str) -> dict | None:
        db = get_db()
        result = db.table("pass_distribution_links").select("*").eq("slug", slug).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_for_pass(link_id: str, pass_id: str) -> dict | None:
        db = get_db()
        result = (
            db.table("pass_distribution_links")
            .select("*")
            .eq("id", link_id)
            .eq("pass_id", pass_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_for_pass(pass_id: str) -> list[dict]:
        db = get_db()
        result = (
            db.table("pass_distribution_links")
            .select("*")
            .eq("pass_id", pass_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def update(link_id: str, **kwargs) -> dict | None:
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = db.table("pass_distribution_links").update(kwargs).eq("id", link_id).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def record_access(link: dict) -> dict | None:
        """Bump the access counter and stamp last_accessed_at."""
        return DistributionLinkRepository.update(
            link["id"],
            accessed_count=(link.get("accessed_count") or 0) + 1,
            last_accessed_at=utcnow_iso(),
        )
