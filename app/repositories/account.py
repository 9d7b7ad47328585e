from database.connection import get_db, utcnow_iso, with_retry


class AccountRepository:

    @staticmethod
    @with_retry()
    def create(
        auth_id: str | None,
        name: str,
        email: str,
        region: str,
        industry: str | None = None,
        approval_status: str = "pending",
    ) -> dict | None:
        """Create a new account at the first tier."""
        db = get_db()
        data = {
            "auth_id": auth_id,
            "name": name,
            "email": email,
            "region": region,
            "industry": industry,
            "approval_status": approval_status,
            "tier": "Email_Verified",
            "plan": "free",
            "is_admin": False,
            "pre_launch_checklist": {},
        }
        if approval_status == "approved":
            data["approved_at"] = utcnow_iso()
        result = db.table("accounts").insert(data).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_id(account_id: str) -> dict | None:
        db = get_db()
        result = db.table("accounts").select("*").eq("id", account_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_auth_id(auth_id: str) -> dict | None:
        """Get the account linked to a Supabase auth user."""
        db = get_db()
        result = db.table("accounts").select("*").eq("auth_id", auth_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_email(email: str) -> dict | None:
        db = get_db()
        result = db.table("accounts").select("*").eq("email", email.lower()).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_by_approval_status(
        approval_status: str,
        page: int = 1,
        per_page: int = 50,
        region: str | None = None,
    ) -> tuple[list[dict], int]:
        """Page through accounts in an approval queue, newest first."""
        db = get_db()
        start = (page - 1) * per_page
        query = db.table("accounts").select("*", count="exact").eq("approval_status", approval_status)
        if region:
            query = query.eq("region", region)
        result = query.order("created_at", desc=True).range(start, start + per_page - 1).execute()
        rows = result.data if result and result.data else []
        total = result.count if result and result.count is not None else len(rows)
        return rows, total

    @staticmethod
    @with_retry()
    def list_production_requests(page: int = 1, per_page: int = 15) -> tuple[list[dict], int]:
        """Accounts with an open production request, oldest request first."""
        db = get_db()
        start = (page - 1) * per_page
        result = (
            db.table("accounts")
            .select("*", count="exact")
            .not_.is_("production_requested_at", "null")
            .is_("production_approved_at", "null")
            .is_("production_rejected_at", "null")
            .order("production_requested_at")
            .range(start, start + per_page - 1)
            .execute()
        )
        rows = result.data if result and result.data else []
        total = result.count if result and result.count is not None else len(rows)
        return rows, total

    @staticmethod
    @with_retry()
    def get_admins() -> list[dict]:
        db = get_db()
        result = db.table("accounts").select("*").eq("is_admin", True).execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def update(account_id: str, **kwargs) -> dict | None:
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = db.table("accounts").update(kwargs).eq("id", account_id).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def update_if_tier(account_id: str, expected_tier: str, **kwargs) -> dict | None:
        """Update only while the stored tier still equals `expected_tier`.

        Returns None when another writer changed the tier first.
        """
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = (
            db.table("accounts")
            .update(kwargs)
            .eq("id", account_id)
            .eq("tier", expected_tier)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def update_if_approval_status(account_id: str, expected_status: str, **kwargs) -> dict | None:
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = (
            db.table("accounts")
            .update(kwargs)
            .eq("id", account_id)
            .eq("approval_status", expected_status)
            .execute()
        )
        return result.data[0] if result and result.data else None
