from database.connection import get_db, with_retry


class PassUpdateRepository:
    """History of field-level changes made to passes."""

    @staticmethod
    @with_retry()
    def create(pass_id: str, **fields) -> dict | None:
        db = get_db()
        result = db.table("pass_updates").insert({"pass_id": pass_id, **fields}).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_for_pass(pass_id: str, page: int = 1, per_page: int = 15) -> tuple[list[dict], int]:
        db = get_db()
        start = (page - 1) * per_page
        result = (
            db.table("pass_updates")
            .select("*", count="exact")
            .eq("pass_id", pass_id)
            .order("created_at", desc=True)
            .range(start, start + per_page - 1)
            .execute()
        )
        rows = result.data if result and result.data else []
        total = result.count if result and result.count is not None else len(rows)
        return rows, total

    @staticmethod
    @with_retry()
    def delete_older_than(cutoff: str) -> int:
        db = get_db()
        result = db.table("pass_updates").delete().lt("created_at", cutoff).execute()
        return len(result.data) if result and result.data else 0
