from database.connection import get_db, utcnow_iso, with_retry

ONBOARDING_STEPS = ("email_verified", "apple_setup", "google_setup", "user_profile", "first_pass")


class OnboardingRepository:
    """Repository for per-account onboarding steps.

    One row per (account_id, step_key); completed_at is null until the step is done.
    """

    @staticmethod
    @with_retry()
    def seed(account_id: str, completed: tuple[str, ...] = ()) -> list[dict]:
        """Create the standard onboarding steps for a new account."""
        db = get_db()
        now = utcnow_iso()
        rows = [
            {
                "account_id": account_id,
                "step_key": step,
                "completed_at": now if step in completed else None,
            }
            for step in ONBOARDING_STEPS
        ]
        result = db.table("onboarding_steps").insert(rows).execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def get_steps(account_id: str) -> list[dict]:
        db = get_db()
        result = db.table("onboarding_steps").select("*").eq("account_id", account_id).execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def mark_complete(account_id: str, step_key: str) -> dict | None:
        """Mark a step complete; steps already completed keep their timestamp."""
        db = get_db()
        result = (
            db.table("onboarding_steps")
            .update({"completed_at": utcnow_iso()})
            .eq("account_id", account_id)
            .eq("step_key", step_key)
            .is_("completed_at", "null")
            .execute()
        )
        return result.data[0] if result and result.data else None
