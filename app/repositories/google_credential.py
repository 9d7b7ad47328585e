from database.connection import get_db, utcnow_iso, with_retry


class GoogleCredentialRepository:
    """Uploaded Google Wallet service-account credentials. Deletes are soft (deleted_at)."""

    @staticmethod
    @with_retry()
    def create(
        account_id: str,
        issuer_id: str,
        project_id: str,
        client_email: str,
        private_key_encrypted: str,
    ) -> dict | None:
        db = get_db()
        result = db.table("google_credentials").insert({
            "account_id": account_id,
            "issuer_id": issuer_id,
            "project_id": project_id,
            "client_email": client_email,
            "private_key_encrypted": private_key_encrypted,
            "last_rotated_at": utcnow_iso(),
        }).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_id(credential_id: str, account_id: str) -> dict | None:
        db = get_db()
        result = (
            db.table("google_credentials")
            .select("*")
            .eq("id", credential_id)
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
            db.table("google_credentials")
            .select("*")
            .eq("account_id", account_id)
            .is_("deleted_at", "null")
            .order("created_at", desc=True)
            .execute()
        )
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def soft_delete(credential_id: str, account_id: str) -> bool:
        db = get_db()
        result = (
            db.table("google_credentials")
            .update({"deleted_at": utcnow_iso()})
            .eq("id", credential_id)
            .eq("account_id", account_id)
            .is_("deleted_at", "null")
            .execute()
        )
        return bool(result and result.data and len(result.data) > 0)
