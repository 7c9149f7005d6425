"""Binary recording format for execution traces, with a writer and a reader."""