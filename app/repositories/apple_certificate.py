from database.connection import get_db, utcnow_iso, with_retry


class AppleCertificateRepository:
    """Uploaded Apple pass signing certificates. Deletes are soft (deleted_at)."""

    @staticmethod
    @with_retry()
    def create(
        account_id: str,
        path: str,
        fingerprint: str,
        valid_from: str,
        expiry_date: str,
        password_encrypted: str | None = None,
    ) -> dict | None:
        db = get_db()
        result = db.table("apple_certificates").insert({
            "account_id": account_id,
            "path": path,
            "fingerprint": fingerprint,
            "valid_from": valid_from,
            "expiry_date": expiry_date,
            "password_encrypted": password_encrypted,
            "expiry_notified_30_days": False,
            "expiry_notified_7_days": False,
            "expiry_notified_0_days": False,
        }).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_id(certificate_id: str, account_id: str) -> dict | None:
        """Get an active certificate owned by the account."""
        db = get_db()
        result = (
            db.table("apple_certificates")
            .select("*")
            .eq("id", certificate_id)
            .eq("account_id", account_id)
            .is_("deleted_at", "null")
            .limit(1)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_for_account(account_id: str) -> list[dict]:
        db = get_db()
        result = (
            db.table("apple_certificates")
            .select("*")
            .eq("account_id", account_id)
            .is_("deleted_at", "null")
            .order("created_at", desc=True)
            .execute()
        )
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def list_active() -> list[dict]:
        """All non-deleted certificates, for the expiry sweep."""
        db = get_db()
        result = db.table("apple_certificates").select("*").is_("deleted_at", "null").execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def update(certificate_id: str, **kwargs) -> dict | None:
        db = get_db()
        kwargs["updated_at"] = utcnow_iso()
        result = db.table("apple_certificates").update(kwargs).eq("id", certificate_id).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def soft_delete(certificate_id: str, account_id: str) -> bool:
        db = get_db()
        result = (
            db.table("apple_certificates")
            .update({"deleted_at": utcnow_iso()})
            .eq("id", certificate_id)
            .eq("account_id", account_id)
            .is_("deleted_at", "null")
            .execute()
        )
        return bool(result and result.data and len(result.data) > 0)
