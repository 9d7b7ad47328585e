"""Business email-domain whitelist: signups from these domains are auto-approved."""

import logging

from app.repositories.business_domain import BusinessDomainRepository
from app.services import cache

logger = logging.getLogger(__name__)


def extract_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].strip().lower()


def get_business_domains() -> list[str]:
    domains = cache.get_cached_domains()
    if domains is None:
        domains = [d.lower() for d in BusinessDomainRepository.get_all_domains()]
        cache.cache_domains(domains)
    return domains


def is_business_domain(email: str) -> bool:
    return extract_domain(email) in get_business_domains()


def approval_status_for(email: str) -> str:
    """'approved' for whitelisted domains, 'pending' otherwise."""
    if is_business_domain(email):
        logger.info(f"Auto-approving signup from whitelisted domain {extract_domain(email)}")
        return "approved"
    return "pending"


def add_business_domain(domain: str) -> dict | None:
    row = BusinessDomainRepository.create(domain.strip().lower())
    cache.invalidate_domains()
    return row


def remove_business_domain(domain_id: str) -> bool:
    deleted = BusinessDomainRepository.delete(domain_id)
    cache.invalidate_domains()
    return deleted
