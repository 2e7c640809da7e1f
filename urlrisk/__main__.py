from .app.scanner import main

raise SystemExit(main())
