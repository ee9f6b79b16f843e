"""Activity detection, persisted suspend state and the periodic suspend check."""