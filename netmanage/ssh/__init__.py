"""SSH server scaffolding with password authentication, per-channel handlers and trace hooks."""