"""Postgres schema for the Supabase backend. Run it in the Supabase SQL editor (see init_db.py)."""

SCHEMA_SQL = """
-- Exam catalog
CREATE TABLE IF NOT EXISTS exams (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    duration_minutes INT NOT NULL DEFAULT 30 CHECK (duration_minutes > 0),
    total_questions INT NOT NULL DEFAULT 10,
    passing_score INT CHECK (passing_score IS NULL OR passing_score BETWEEN 0 AND 100),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Question bank
CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    question TEXT NOT NULL,
    options JSONB NOT NULL,
    correct_option INT NOT NULL CHECK (correct_option >= 0),
    category TEXT DEFAULT '',
    difficulty TEXT DEFAULT 'medium' CHECK (difficulty IN ('easy', 'medium', 'hard')),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Attempts: frozen question list and answers live on the row
CREATE TABLE IF NOT EXISTS exam_sessions (
    id TEXT PRIMARY KEY,
    exam_id TEXT NOT NULL REFERENCES exams(id),
    user_id TEXT NOT NULL,
    questions JSONB NOT NULL,
    answers JSONB NOT NULL DEFAULT '{}'::jsonb,
    started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    submitted_at TIMESTAMPTZ,
    score INT CHECK (score IS NULL OR score BETWEEN 0 AND 100),
    is_completed BOOLEAN NOT NULL DEFAULT FALSE
);

-- At most one open attempt per (exam, user)
CREATE UNIQUE INDEX IF NOT EXISTS uq_exam_sessions_open
    ON exam_sessions(exam_id, user_id) WHERE NOT is_completed;

-- Results: exactly one per attempt
CREATE TABLE IF NOT EXISTS exam_results (
    id TEXT PRIMARY KEY,
    exam_session_id TEXT NOT NULL UNIQUE REFERENCES exam_sessions(id),
    user_id TEXT NOT NULL,
    exam_id TEXT NOT NULL REFERENCES exams(id),
    score INT NOT NULL CHECK (score BETWEEN 0 AND 100),
    total_questions INT NOT NULL,
    correct_answers INT NOT NULL,
    time_taken_minutes INT NOT NULL,
    passed BOOLEAN NOT NULL,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_exam_sessions_user_id ON exam_sessions(user_id);
CREATE INDEX IF NOT EXISTS idx_exam_results_user_id ON exam_results(user_id);
"""


def statements() -> list[str]:
    """Schema split into individual statements."""
    return [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]
