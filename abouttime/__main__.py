from abouttime.cli import main

raise SystemExit(main())
