# Supabase table: deployment_records
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key, default: gen_random_uuid())
- session_id: text (not null, unique) - generation API chat id
- owner_id: uuid (nullable, references auth.users.id) - null for anonymous sessions
- website_name: text (nullable)
- repository_name: text (nullable)
- repository_url: text (nullable)
- hosting_project_id: text (nullable)
- hosting_project_url: text (nullable) - hosting dashboard URL
- deployment_url: text (nullable) - live site URL
- deployment_status: text (not null, default: 'unset') - values: unset, pending, deployed, failed
- deployed_at: timestamp (nullable) - stamped by every deployment update
- created_at: timestamp (default: now())

Constraints:
- unique (session_id); inserts use upsert with ignore_duplicates on session_id
"""
