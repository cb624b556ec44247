"""Learning progress, assessment grading and certification eligibility API."""
