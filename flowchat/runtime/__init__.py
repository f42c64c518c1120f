"""Runtime services shared by the engine and its host widgets."""
