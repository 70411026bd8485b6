STUDY_COLUMNS = """
        s.id AS study_id,
        s.protocol_number,
        s.study_title,
        s.status,
        s.lifecycle,
        s.recruitment,
        s.protocol_score,
        s.screening_multiplier,
        s.query_multiplier,
        s.meeting_admin_points,
        s.rubric_trial_type,
        s.rubric_phase,
        s.rubric_sponsor_type,
        s.rubric_visit_volume,
        s.rubric_procedural_intensity,
        s.rubric_notes
"""

FETCH_STUDY = f"""
    SELECT {STUDY_COLUMNS}
    FROM studies s
    WHERE s.id::text = %s
"""

FETCH_STUDIES = f"""
    SELECT {STUDY_COLUMNS}
    FROM studies s
    ORDER BY s.protocol_number NULLS LAST, s.id
"""

FETCH_STUDIES_BY_ID = f"""
    SELECT {STUDY_COLUMNS}
    FROM studies s
    WHERE s.id::text = ANY(%s)
    ORDER BY s.protocol_number NULLS LAST, s.id
"""

FETCH_STUDY_IDS = """
    SELECT id AS study_id
    FROM studies
    ORDER BY protocol_number NULLS LAST, id
"""

UPDATE_STUDY_SETTINGS = """
    UPDATE studies SET
        protocol_score = %s,
        screening_multiplier = %s,
        query_multiplier = %s,
        meeting_admin_points = %s,
        lifecycle = %s,
        recruitment = %s,
        rubric_trial_type = %s,
        rubric_phase = %s,
        rubric_sponsor_type = %s,
        rubric_visit_volume = %s,
        rubric_procedural_intensity = %s,
        rubric_notes = %s,
        updated_at = CURRENT_TIMESTAMP
    WHERE id::text = %s
"""

FETCH_VISIT_WEIGHTS = """
    SELECT study_id, visit_type, weight
    FROM visit_weights
    WHERE study_id::text = ANY(%s)
    ORDER BY study_id, visit_type
"""

UPSERT_VISIT_WEIGHT = """
    INSERT INTO visit_weights (study_id, visit_type, weight)
    VALUES (%s, %s, %s)
    ON CONFLICT (study_id, visit_type) DO UPDATE SET
        weight = excluded.weight
"""

# Weekly effort logs
FETCH_COORDINATOR_LOGS = """
    SELECT
        coordinator_id,
        week_start,
        meeting_hours,
        screening_hours,
        screening_study_count,
        query_hours,
        query_study_count,
        notes,
        recorded_by,
        updated_at
    FROM coordinator_metrics
    WHERE coordinator_id::text = %s
    ORDER BY week_start DESC
    LIMIT %s
"""

FETCH_COORDINATOR_BREAKDOWN = """
    SELECT coordinator_id, study_id, week_start, meeting_hours, screening_hours, query_hours, notes
    FROM coordinator_metrics_notes
    WHERE coordinator_id::text = %s
      AND week_start >= %s
    ORDER BY week_start DESC, study_id
"""

FETCH_LOGS_IN_WINDOW = """
    SELECT
        coordinator_id,
        week_start,
        meeting_hours,
        screening_hours,
        screening_study_count,
        query_hours,
        query_study_count,
        notes,
        recorded_by,
        updated_at
    FROM coordinator_metrics
    WHERE week_start >= %s
      AND week_start < %s
"""

FETCH_BREAKDOWN_IN_WINDOW = """
    SELECT coordinator_id, study_id, week_start, meeting_hours, screening_hours, query_hours, notes
    FROM coordinator_metrics_notes
    WHERE week_start >= %s
      AND week_start < %s
"""

UPSERT_WEEKLY_LOG = """
    INSERT INTO coordinator_metrics (
        coordinator_id, recorded_by, week_start,
        meeting_hours, screening_hours, screening_study_count,
        query_hours, query_study_count, notes
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (coordinator_id, week_start) DO UPDATE SET
        recorded_by = excluded.recorded_by,
        meeting_hours = excluded.meeting_hours,
        screening_hours = excluded.screening_hours,
        screening_study_count = excluded.screening_study_count,
        query_hours = excluded.query_hours,
        query_study_count = excluded.query_study_count,
        notes = excluded.notes,
        updated_at = CURRENT_TIMESTAMP
    RETURNING updated_at
"""

CLEAR_WEEKLY_BREAKDOWN = """
    DELETE FROM coordinator_metrics_notes
    WHERE coordinator_id::text = %s
      AND week_start = %s
"""

INSERT_BREAKDOWN_ENTRY = """
    INSERT INTO coordinator_metrics_notes (
        coordinator_id, recorded_by, study_id, week_start,
        meeting_hours, screening_hours, query_hours, notes
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (coordinator_id, study_id, week_start) DO UPDATE SET
        recorded_by = EXCLUDED.recorded_by,
        meeting_hours = EXCLUDED.meeting_hours,
        screening_hours = EXCLUDED.screening_hours,
        query_hours = EXCLUDED.query_hours,
        notes = EXCLUDED.notes,
        updated_at = CURRENT_TIMESTAMP
"""

FETCH_BREAKDOWN_SERIES = """
    SELECT
        study_id,
        coordinator_id,
        week_start,
        meeting_hours,
        screening_hours,
        query_hours,
        total_hours,
        note_entries,
        last_updated_at
    FROM v_coordinator_metrics_breakdown_weekly
    WHERE study_id::text = ANY(%s)
      AND week_start >= %s
    ORDER BY study_id, week_start, coordinator_id
"""

# Assignments
FETCH_ASSIGNMENTS = """
    SELECT id, coordinator_id, study_id, role, joined_at
    FROM study_coordinators
"""

FETCH_COORDINATOR_ASSIGNMENTS = """
    SELECT id, coordinator_id, study_id, role, joined_at
    FROM study_coordinators
    WHERE coordinator_id::text = %s
    ORDER BY joined_at NULLS FIRST, study_id
"""

# Snapshot cache
FETCH_SNAPSHOTS = """
    SELECT study_id, payload, computed_at, expires_at
    FROM study_workload_snapshots
    WHERE study_id::text = ANY(%s)
"""

UPSERT_SNAPSHOT = """
    INSERT INTO study_workload_snapshots (study_id, payload, computed_at, expires_at)
    VALUES (%s, %s, %s, %s)
    ON CONFLICT (study_id) DO UPDATE SET
        payload = excluded.payload,
        computed_at = excluded.computed_at,
        expires_at = excluded.expires_at,
        updated_at = CURRENT_TIMESTAMP
"""

EXPIRE_SNAPSHOTS = """
    UPDATE study_workload_snapshots
    SET expires_at = CURRENT_TIMESTAMP
    WHERE study_id::text = ANY(%s)
"""
