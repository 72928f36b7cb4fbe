"""Google environment - OAuth for Gmail, Calendar and Drive scopes."""
