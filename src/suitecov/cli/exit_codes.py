# mirror <sysexits.h>
EXIT_OK = 0  # Normal success
EXIT_GENERIC = 1  # Generic failure (fallback)
EXIT_THRESHOLD = 2  # Coverage thresholds not met on a full run
EXIT_DATAERR = 65  # Input data was invalid (e.g., malformed payload JSON)
EXIT_NOINPUT = 66  # No coverage payloads found
EXIT_CONFIG = 78  # Invalid configuration (e.g., bad [tool.suitecov.coverage] table)
