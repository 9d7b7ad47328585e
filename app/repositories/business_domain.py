from database.connection import get_db, with_retry


class BusinessDomainRepository:

    @staticmethod
    @with_retry()
    def get_all_domains() -> list[str]:
        db = get_db()
        result = db.table("business_domains").select("domain").execute()
        rows = result.data if result and result.data else []
        return [row["domain"] for row in rows]

    @staticmethod
    @with_retry()
    def get_all() -> list[dict]:
        db = get_db()
        result = db.table("business_domains").select("*").order("domain").execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def create(domain: str) -> dict | None:
        db = get_db()
        result = db.table("business_domains").insert({"domain": domain}).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_domain(domain: str) -> dict | None:
        db = get_db()
        result = db.table("business_domains").select("*").eq("domain", domain).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def delete(domain_id: str) -> bool:
        db = get_db()
        result = db.table("business_domains").delete().eq("id", domain_id).execute()
        return bool(result and result.data and len(result.data) > 0)
