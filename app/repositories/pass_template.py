from database.connection import get_db, utcnow_iso, with_retry


class PassTemplateRepository:

    @staticmethod
    @with_retry()
    def create(account_id: str, **fields) -> dict | None:
        db = get_db()
        result = db.table("pass_templates").insert({"account_id": account_id, **fields}).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_for_account(template_id: str, account_id: str) -> dict | None:
        db = get_db()
        result = (
            db.table("pass_templates")
            .select("*")
            .eq("id", template_id)
            .eq("account_id", account_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_for_account(account_id: str) -> list[dict]:
        db = get_db()
        result = (
            db.table("pass_templates")
            .select("*")
            .eq("account_id", account_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def update(template_id: str, **kwargs) -> dict | None:
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = db.table("pass_templates").update(kwargs).eq("id", template_id).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def delete(template_id: str) -> bool:
        db = get_db()
        result = db.table("pass_templates").delete().eq("id", template_id).execute()
        return bool(result and result.data and len(result.data) > 0)
