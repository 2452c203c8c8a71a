"""
Practice Dashboard Database Schema
Supports patients, clinical records, practices, messaging and session access.
"""

SCHEMA = """
-- =============================================================================
-- 1. PATIENTS - Demographics, contact, emergency contact and insurance
-- =============================================================================
CREATE TABLE IF NOT EXISTS patients (
    id TEXT PRIMARY KEY,
    patient_id TEXT UNIQUE,           -- PAT-YYYYMMNNNNN

    -- Demographics
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    date_of_birth TEXT NOT NULL,
    gender TEXT,
    ssn TEXT,
    marital_status TEXT,
    race TEXT,
    ethnicity TEXT,
    language TEXT,

    -- Contact
    phone TEXT,
    email TEXT,
    address_line1 TEXT,
    address_line2 TEXT,
    city TEXT,
    state TEXT,
    zip_code TEXT,

    -- Emergency contact
    emergency_contact_name TEXT,
    emergency_contact_phone TEXT,
    emergency_contact_relation TEXT,

    -- Insurance
    insurance_company TEXT,
    insurance_id TEXT,
    group_number TEXT,
    policy_holder_name TEXT,
    policy_holder_relationship TEXT,
    secondary_insurance TEXT,
    secondary_insurance_id TEXT,

    -- Listing attributes
    status TEXT DEFAULT 'active' CHECK (status IN ('active', 'inactive')),
    risk_level TEXT DEFAULT 'low' CHECK (risk_level IN ('low', 'medium', 'high')),
    preferred_provider TEXT,
    outstanding_balance REAL DEFAULT 0,

    -- Metadata
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_patients_phone ON patients(phone);
CREATE INDEX IF NOT EXISTS idx_patients_email ON patients(email);
CREATE INDEX IF NOT EXISTS idx_patients_name_dob ON patients(last_name, first_name, date_of_birth);


-- =============================================================================
-- 2. PATIENT_CHANGE_LOG - Audit trail for patient info changes
-- =============================================================================
CREATE TABLE IF NOT EXISTS patient_change_log (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    field_name TEXT NOT NULL,
    old_value TEXT,
    new_value TEXT,
    change_type TEXT NOT NULL,
    changed_at TEXT DEFAULT CURRENT_TIMESTAMP,
    changed_by TEXT,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);

CREATE INDEX IF NOT EXISTS idx_change_log_patient ON patient_change_log(patient_id);


-- =============================================================================
-- 3. MEDICAL_HISTORY - One row per patient, list columns hold JSON arrays
-- =============================================================================
CREATE TABLE IF NOT EXISTS medical_history (
    patient_id TEXT PRIMARY KEY,
    allergies TEXT,        -- [{"allergen", "reaction", "severity"}]
    medications TEXT,      -- [{"name", "dosage", "frequency", "start_date"}]
    conditions TEXT,       -- [{"condition", "diagnosis_date", "status", "notes"}]
    surgeries TEXT,        -- [{"procedure", "date", "surgeon", "hospital"}]
    family_history TEXT,   -- [{"relation", "condition", "age"}]
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);


-- =============================================================================
-- 4. PRACTICES - Billing entities with primary and pay-to addresses
-- =============================================================================
CREATE TABLE IF NOT EXISTS practices (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    npi TEXT NOT NULL,
    organization_type TEXT,
    taxonomy_specialty TEXT,
    reference_number TEXT,
    tcn_prefix TEXT,
    statement_tcn_prefix TEXT,
    code TEXT,

    -- Primary office
    address_line1 TEXT,
    address_line2 TEXT,
    city TEXT,
    state TEXT,
    zip_code TEXT,
    time_zone TEXT,
    phone TEXT,
    fax TEXT,
    email TEXT,

    -- Pay-to address
    pay_to_same_as_primary INTEGER DEFAULT 1,
    pay_to_address_line1 TEXT,
    pay_to_address_line2 TEXT,
    pay_to_city TEXT,
    pay_to_state TEXT,
    pay_to_zip_code TEXT,
    pay_to_phone TEXT,
    pay_to_fax TEXT,
    pay_to_email TEXT,

    status TEXT DEFAULT 'active' CHECK (status IN ('active', 'inactive', 'pending')),
    company_id TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_practices_npi ON practices(npi);


-- =============================================================================
-- 5. APPOINTMENTS
-- =============================================================================
CREATE TABLE IF NOT EXISTS appointments (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    date TEXT NOT NULL,
    time TEXT NOT NULL,
    duration INTEGER DEFAULT 30,
    type TEXT NOT NULL,
    provider TEXT NOT NULL,
    location TEXT,
    reason TEXT,
    notes TEXT,
    reminder_method TEXT,

    -- Status: scheduled, confirmed, completed, cancelled, no_show
    status TEXT DEFAULT 'scheduled'
        CHECK (status IN ('scheduled', 'confirmed', 'completed', 'cancelled', 'no_show')),

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);

CREATE INDEX IF NOT EXISTS idx_appointments_patient ON appointments(patient_id);
CREATE INDEX IF NOT EXISTS idx_appointments_date ON appointments(date);


-- =============================================================================
-- 6. VITAL_SIGNS
-- =============================================================================
CREATE TABLE IF NOT EXISTS vital_signs (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    blood_pressure_systolic INTEGER,
    blood_pressure_diastolic INTEGER,
    heart_rate INTEGER,
    temperature REAL,
    respiratory_rate INTEGER,
    oxygen_saturation INTEGER,
    weight REAL,
    height REAL,
    bmi REAL,
    pain_level INTEGER,
    notes TEXT,
    recorded_by TEXT,
    recorded_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);

CREATE INDEX IF NOT EXISTS idx_vitals_patient ON vital_signs(patient_id);


-- =============================================================================
-- 7. PROGRESS_NOTES
-- =============================================================================
CREATE TABLE IF NOT EXISTS progress_notes (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    note_type TEXT NOT NULL,
    note_date TEXT NOT NULL,
    note_time TEXT,
    provider TEXT NOT NULL,
    chief_complaint TEXT,
    history_of_present_illness TEXT,
    review_of_systems TEXT,
    physical_examination TEXT,
    assessment TEXT,
    plan TEXT,
    medications TEXT,
    follow_up TEXT,
    additional_notes TEXT,
    vital_signs TEXT,
    allergies TEXT,
    social_history TEXT,
    family_history TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);

CREATE INDEX IF NOT EXISTS idx_notes_patient ON progress_notes(patient_id);


-- =============================================================================
-- 8. TREATMENT_PLANS
-- =============================================================================
CREATE TABLE IF NOT EXISTS treatment_plans (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    plan_date TEXT NOT NULL,
    provider TEXT NOT NULL,
    diagnosis TEXT NOT NULL,
    treatment_goals TEXT,
    treatment_plan TEXT,
    medications TEXT,
    procedures TEXT,
    lifestyle_modifications TEXT,
    follow_up_schedule TEXT,
    expected_outcome TEXT,
    risk_factors TEXT,
    contraindications TEXT,
    patient_education TEXT,
    additional_notes TEXT,
    status TEXT DEFAULT 'active' CHECK (status IN ('active', 'completed', 'discontinued')),
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);

CREATE INDEX IF NOT EXISTS idx_plans_patient ON treatment_plans(patient_id);


-- =============================================================================
-- 9. DOCUMENTS - Uploaded file metadata
-- =============================================================================
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    document_type TEXT NOT NULL,
    document_name TEXT NOT NULL,
    description TEXT,
    file_name TEXT,
    file_size INTEGER,
    mime_type TEXT,
    storage_path TEXT,
    uploaded_by TEXT,
    uploaded_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);


-- =============================================================================
-- 10. MESSAGES - Patient communications
-- =============================================================================
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    message_type TEXT NOT NULL,
    subject TEXT NOT NULL,
    message TEXT NOT NULL,
    priority TEXT DEFAULT 'normal',
    send_method TEXT NOT NULL,
    scheduled_send TEXT,
    sender TEXT NOT NULL,
    attachments TEXT,      -- JSON array of file names
    status TEXT DEFAULT 'sent' CHECK (status IN ('draft', 'scheduled', 'sent', 'read')),
    sent_at TEXT DEFAULT CURRENT_TIMESTAMP,
    read_at TEXT,
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);


-- =============================================================================
-- 11. CHAT_MESSAGES - Assistant widget history per user and company
-- =============================================================================
CREATE TABLE IF NOT EXISTS chat_messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scope TEXT NOT NULL,   -- "<user_id>:<company_id>"
    role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
    content TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_chat_scope ON chat_messages(scope);


-- =============================================================================
-- 12. USERS / COMPANIES / COMPANY_USERS - Session side
-- =============================================================================
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    full_name TEXT,
    is_super_admin INTEGER DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS companies (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS company_users (
    user_id TEXT NOT NULL,
    company_id TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'billing_staff'
        CHECK (role IN ('admin', 'billing_manager', 'billing_staff', 'collections_agent', 'patient')),
    PRIMARY KEY (user_id, company_id),
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (company_id) REFERENCES companies(id)
);


-- =============================================================================
-- 13. FORM_REPORTS / FORM_REPORT_ACCESS - Route registrations and grants
-- =============================================================================
-- A route listed in form_reports is restricted to users holding a grant.
-- A route not listed at all is open to everyone.
CREATE TABLE IF NOT EXISTS form_reports (
    route_path TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS form_report_access (
    user_id TEXT NOT NULL,
    company_id TEXT NOT NULL,
    route_path TEXT NOT NULL,
    PRIMARY KEY (user_id, company_id, route_path),
    FOREIGN KEY (route_path) REFERENCES form_reports(route_path)
);
"""
