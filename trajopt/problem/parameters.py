class ProblemParameters:
    """
    Named constants of an `OptimalControlProblem`, such as masses, bounds on
    variables, or cost weights. Parameters are read as attributes,
    `parameters.mass`, and are only changed through `update`, so that the
    problem can recompute anything which depends on them.

    Since the transcription of a problem reads its bounds when it is built,
    parameters should be set before a problem is passed to a solver and not
    changed while the solver is in use.

    Parameters
    ----------
    required : iterable of str, default=()
        Names of parameters which must not be None.
    update_fun : callable, optional
        Called as `update_fun(parameters, **changed)` after every call to
        `update`, with `parameters` the `ProblemParameters` instance and
        `changed` the parameters that were passed to `update`.
    **params : dict
        Initial parameter values.
    """
    def __init__(self, required=(), update_fun=None, **params):
        if update_fun is not None and not callable(update_fun):
            raise TypeError("update_fun must be callable")

        # Set directly to bypass __setattr__
        object.__setattr__(self, '_values', dict())
        object.__setattr__(self, '_update_fun', update_fun)
        object.__setattr__(self, 'required', frozenset(required))

        if params:
            self.update(**params)

    def __getattr__(self, name):
        try:
            return self.__dict__['_values'][name]
        except KeyError:
            raise AttributeError(f"Problem parameter {name} has not been set")

    def __setattr__(self, name, value):
        raise AttributeError("Problem parameters must be changed with "
                             "ProblemParameters.update")

    def __contains__(self, name):
        return name in self._values

    def __repr__(self):
        params = ', '.join(f'{k}={v!r}' for k, v in self._values.items())
        return f"ProblemParameters({params})"

    def update(self, check_required=True, **params):
        """
        Set one or more parameters by keyword, then call `update_fun`.

        Parameters
        ----------
        check_required : bool, default=True
            Check that every required parameter is set and not None after the
            update.
        **params : dict
            Parameters to set or change.

        Raises
        ------
        RuntimeError
            If `check_required` and a required parameter is missing or None.
        """
        self._values.update(params)

        if check_required:
            for name in sorted(self.required):
                if self._values.get(name) is None:
                    raise RuntimeError(f"{name} is required but has not been "
                                       f"set")

        if self._update_fun is not None:
            self._update_fun(self, **params)

    def as_dict(self):
        """Return a copy of all parameters as a dict."""
        return dict(self._values)
