"""Mirror a long text document onto a run of Discord webhook messages."""
