from linkeater.cli import main

raise SystemExit(main())
