"""Developer tools for inspecting analysis artefacts."""
