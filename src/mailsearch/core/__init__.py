"""Core request pipeline — translation, mapping and orchestration."""
