from pmipsym.cli import main

raise SystemExit(main())
