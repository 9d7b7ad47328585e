"""Reference schema for the Supabase project.

Applied through Supabase migrations; kept here so the column names used by
the repositories are documented in one place.
"""

SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    auth_id UUID UNIQUE,
    name TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL,
    region TEXT NOT NULL CHECK (region IN ('EU', 'US')),
    industry TEXT,
    business_name TEXT,
    is_admin BOOLEAN NOT NULL DEFAULT FALSE,
    plan TEXT NOT NULL DEFAULT 'free',
    tier TEXT NOT NULL DEFAULT 'Email_Verified'
        CHECK (tier IN ('Email_Verified', 'Verified_And_Configured', 'Production', 'Live')),
    approval_status TEXT NOT NULL DEFAULT 'pending'
        CHECK (approval_status IN ('pending', 'approved', 'rejected')),
    approved_at TIMESTAMPTZ,
    approved_by UUID REFERENCES accounts(id),
    production_requested_at TIMESTAMPTZ,
    production_approved_at TIMESTAMPTZ,
    production_approved_by UUID REFERENCES accounts(id),
    production_rejected_at TIMESTAMPTZ,
    production_rejected_reason TEXT,
    pre_launch_checklist JSONB NOT NULL DEFAULT '{}',
    live_approved_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_accounts_approval ON accounts(approval_status);
CREATE INDEX IF NOT EXISTS idx_accounts_production_request ON accounts(production_requested_at);

CREATE TABLE IF NOT EXISTS business_domains (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    domain TEXT UNIQUE NOT NULL,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS onboarding_steps (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    step_key TEXT NOT NULL,
    completed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    UNIQUE (account_id, step_key)
);

CREATE TABLE IF NOT EXISTS apple_certificates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    password_encrypted TEXT,
    fingerprint TEXT NOT NULL,
    valid_from TIMESTAMPTZ NOT NULL,
    expiry_date TIMESTAMPTZ NOT NULL,
    expiry_notified_30_days BOOLEAN NOT NULL DEFAULT FALSE,
    expiry_notified_7_days BOOLEAN NOT NULL DEFAULT FALSE,
    expiry_notified_0_days BOOLEAN NOT NULL DEFAULT FALSE,
    deleted_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_apple_certificates_expiry ON apple_certificates(expiry_date);

CREATE TABLE IF NOT EXISTS google_credentials (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    issuer_id TEXT NOT NULL,
    project_id TEXT NOT NULL,
    client_email TEXT NOT NULL,
    private_key_encrypted TEXT NOT NULL,
    last_rotated_at TIMESTAMPTZ,
    deleted_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS pass_templates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    description TEXT,
    pass_type TEXT NOT NULL,
    platforms JSONB NOT NULL DEFAULT '[]',
    design_data JSONB NOT NULL DEFAULT '{}',
    barcode_data JSONB,
    images JSONB,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS passes (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    pass_template_id UUID REFERENCES pass_templates(id) ON DELETE SET NULL,
    serial_number TEXT UNIQUE NOT NULL,
    pass_type TEXT NOT NULL,
    platforms JSONB NOT NULL DEFAULT '[]',
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'voided', 'expired')),
    pass_data JSONB NOT NULL DEFAULT '{}',
    barcode_data JSONB,
    images JSONB,
    pkpass_path TEXT,
    google_save_url TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_passes_account ON passes(account_id);

CREATE TABLE IF NOT EXISTS pass_distribution_links (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    pass_id UUID NOT NULL REFERENCES passes(id) ON DELETE CASCADE,
    slug TEXT UNIQUE NOT NULL,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'disabled')),
    accessed_count INTEGER NOT NULL DEFAULT 0,
    last_accessed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_distribution_links_pass ON pass_distribution_links(pass_id);

CREATE TABLE IF NOT EXISTS bulk_updates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    pass_template_id UUID NOT NULL REFERENCES pass_templates(id) ON DELETE CASCADE,
    field_key TEXT NOT NULL,
    field_value JSONB NOT NULL,
    filters JSONB NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'processing', 'completed')),
    total_count INTEGER NOT NULL DEFAULT 0,
    processed_count INTEGER NOT NULL DEFAULT 0,
    failed_count INTEGER NOT NULL DEFAULT 0,
    started_at TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS pass_updates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    pass_id UUID NOT NULL REFERENCES passes(id) ON DELETE CASCADE,
    account_id UUID REFERENCES accounts(id) ON DELETE SET NULL,
    bulk_update_id UUID REFERENCES bulk_updates(id) ON DELETE SET NULL,
    source TEXT NOT NULL CHECK (source IN ('dashboard', 'api', 'bulk')),
    fields_changed JSONB NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_pass_updates_pass ON pass_updates(pass_id, created_at DESC);
"""
