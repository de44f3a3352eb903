from bigoprobe.cli import main

raise SystemExit(main())
