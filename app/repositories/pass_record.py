from database.connection import get_db, utcnow_iso, with_retry


class PassRepository:

    @staticmethod
    @with_retry()
    def create(account_id: str, **fields) -> dict | None:
        db = get_db()
        result = db.table("passes").insert({"account_id": account_id, **fields}).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_id(pass_id: str) -> dict | None:
        db = get_db()
        result = db.table("passes").select("*").eq("id", pass_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_for_account(pass_id: str, account_id: str) -> dict | None:
        """Get a pass only if it belongs to the account."""
        db = get_db()
        result = (
            db.table("passes")
            .select("*")
            .eq("id", pass_id)
            .eq("account_id", account_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_for_account(
        account_id: str,
        status: str | None = None,
        pass_type: str | None = None,
        platform: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[dict], int]:
        db = get_db()
        start = (page - 1) * per_page
        query = db.table("passes").select("*", count="exact").eq("account_id", account_id)
        if status:
            query = query.eq("status", status)
        if pass_type:
            query = query.eq("pass_type", pass_type)
        if platform:
            query = query.contains("platforms", [platform])
        result = query.order("created_at", desc=True).range(start, start + per_page - 1).execute()
        rows = result.data if result and result.data else []
        total = result.count if result and result.count is not None else len(rows)
        return rows, total

    @staticmethod
    @with_retry()
    def list_for_template(
        account_id: str,
        template_id: str,
        status: str | None = None,
        platform: str | None = None,
    ) -> list[dict]:
        """Every pass of the account created from the template, oldest first."""
        db = get_db()
        query = (
            db.table("passes")
            .select("*")
            .eq("account_id", account_id)
            .eq("pass_template_id", template_id)
        )
        if status:
            query = query.eq("status", status)
        if platform:
            query = query.contains("platforms", [platform])
        result = query.order("created_at").execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def count(account_id: str) -> int:
        db = get_db()
        result = db.table("passes").select("id", count="exact").eq("account_id", account_id).execute()
        return result.count if result and result.count is not None else 0

    @staticmethod
    @with_retry()
    def update(pass_id: str, **kwargs) -> dict | None:
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = db.table("passes").update(kwargs).eq("id", pass_id).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def update_if_unchanged(pass_id: str, expected_updated_at: str | None, **kwargs) -> dict | None:
        """Update only while updated_at still equals `expected_updated_at`.

        Returns None when another writer touched the pass first.
        """
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        query = db.table("passes").update(kwargs).eq("id", pass_id)
        if expected_updated_at is None:
            query = query.is_("updated_at", "null")
        else:
            query = query.eq("updated_at", expected_updated_at)
        result = query.execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def delete(pass_id: str) -> bool:
        db = get_db()
        result = db.table("passes").delete().eq("id", pass_id).execute()
        return bool(result and result.data and len(result.data) > 0)
