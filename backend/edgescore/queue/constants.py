FETCH_QUEUE = "fetch-queue"
PARSE_QUEUE = "parse-queue"
RESULTS_QUEUE = "results-queue"
ALERT_QUEUE = "alert-queue"

FETCH_JOB = "fetch-site"
PARSE_JOB = "parse-snapshot"
RESULTS_JOB = "fetch-results"
ALERT_JOB = "send-alerts"

ALERT_SCHEDULE_ID = "telegram-alerts"
