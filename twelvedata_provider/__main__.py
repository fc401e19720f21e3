from twelvedata_provider.cli import main

raise SystemExit(main())
