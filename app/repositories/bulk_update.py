from database.connection import get_db, utcnow_iso, with_retry


class BulkUpdateRepository:

    @staticmethod
    @with_retry()
    def create(account_id: str, **fields) -> dict | None:
        db = get_db()
        result = db.table("bulk_updates").insert({
            "account_id": account_id,
            "status": "pending",
            "total_count": 0,
            "processed_count": 0,
            "failed_count": 0,
            **fields,
        }).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_id(bulk_update_id: str) -> dict | None:
        db = get_db()
        result = db.table("bulk_updates").select("*").eq("id", bulk_update_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_for_account(bulk_update_id: str, account_id: str) -> dict | None:
        db = get_db()
        result = (
            db.table("bulk_updates")
            .select("*")
            .eq("id", bulk_update_id)
            .eq("account_id", account_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def update(bulk_update_id: str, **kwargs) -> dict | None:
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = db.table("bulk_updates").update(kwargs).eq("id", bulk_update_id).execute()
        return result.data[0] if result and result.data else None
