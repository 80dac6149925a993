"""Holiday calendars and business-day counting."""
