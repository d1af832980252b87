from sddppy.utils.logger import LoggerSDDP, LoggerEvaluation
from sddppy.utils.statistics import rand_int
from sddppy.cut_generator import update_value_function, expected_value
from sddppy.cut_io import CutWriter
from sddppy.evaluation import Evaluation
from sddppy.utils import exception
from sddppy.utils.exception import WorkerError
import time
import numpy
import multiprocessing
import queue
import traceback
import pandas


def new_cut_records(records, known):
    """Records whose (stage, markov_state, rib, cut) is not in known, in
    order and without repetition. known is not modified."""
    fresh, seen = [], set()
    for record in records:
        key = record_key(record)
        if key not in known and key not in seen:
            seen.add(key)
            fresh.append(record)
    return fresh


def record_key(record):
    stage, markov_state, rib, cut = record
    return (stage, markov_state, rib, cut.key)


# errors a worker reports under their own class
WORKER_EXCEPTIONS = {
    cls.__name__: cls
    for cls in [
        exception.ModelConstructionError,
        exception.SampleSizeError,
        exception.TransitionMatrixError,
        exception.InfeasibleSubproblemError,
        exception.InterpolationRangeError,
        exception.SolverError,
    ]
}


def worker_exception(p, name, attributes, text):
    """Rebuild the error a worker reported. Known classes keep their class
    and attributes, with the worker traceback as message; anything else
    becomes WorkerError."""
    message = "worker {} failed:\n{}".format(p, text)
    cls = WORKER_EXCEPTIONS.get(name)
    if cls is None:
        return WorkerError(message)
    error = cls.__new__(cls)
    Exception.__init__(error, message)
    error.__dict__.update(attributes)
    return error


class SDDP(object):
    """
    SDDP solver.

    Parameters
    ----------
    graph: PolicyGraph
        A built policy graph.

    Attributes
    ----------
    db: list
        The deterministic bound after every iteration.

    pv: list
        The sampled policy value of every iteration.

    iteration: int
        The number of iterations run so far.
    """

    def __init__(self, graph):
        self.graph = graph
        self.db = []
        self.pv = []
        self.iteration = 0
        self.cut_writer = None
        self.stop_reason = None
        self.total_time = 0
        self._known = set()

    def __repr__(self):
        return "<SDDP solver instance, {} iterations>".format(self.iteration)

    def _forward(self, random_state, query=None, query_stage_cost=False):
        """Single forward step. Sample a path through the graph and solve the
        nodes along it."""
        graph = self.graph
        query = [] if query is None else list(query)
        path = [None for _ in range(graph.T)]
        forward_solution = [None for _ in range(graph.T)]
        prices = [None for _ in range(graph.T)]
        solution = {item: numpy.full(graph.T, numpy.nan) for item in query}
        stage_cost = numpy.full(graph.T, numpy.nan)
        pv = 0
        price = graph.initial_price
        # time loop
        for t in range(graph.T):
            if t == 0:
                probability = graph.transition_matrix[0][0]
                k = rand_int(len(probability), random_state, probability)
            else:
                probability = graph.transition_matrix[t][path[t-1]]
                k = rand_int(len(probability), random_state, probability)
            node = graph.nodes[t][k]
            m = node.model
            if t == 0:
                m._update_link_constrs(m.initial_values)
            else:
                m._update_link_constrs(forward_solution[t-1])
            price = node.sample_price(price, random_state)
            scen = rand_int(
                k=m.n_samples,
                probability=m.probability,
                random_state=random_state,
            )
            m._update_uncertainty(scen)
            node.set_price(price)
            m._solve(t, k)
            path[t] = k
            prices[t] = price
            forward_solution[t] = m._get_forward_solution()
            for var in m.getVars():
                if var.varName in query:
                    solution[var.varName][t] = var.X
            cost = node.stage_cost()
            stage_cost[t] = cost
            pv += cost
        #! time loop
        result = {
            'path': path,
            'forward_solution': forward_solution,
            'prices': prices,
            'pv': pv,
        }
        if query:
            result['solution'] = solution
        if query_stage_cost:
            result['stage_cost'] = stage_cost
        return result

    def _backward(self, path, forward_solution, cut_writer=None,
            iteration=None):
        """Single backward step. Revisit the sampled nodes in reverse order
        and add cuts to their value functions, tagged with iteration
        (default: the current one). Return the cut records."""
        graph = self.graph
        iteration = self.iteration if iteration is None else iteration
        records = []
        for t in range(graph.T-2, -1, -1):
            node = graph.nodes[t][path[t]]
            records += update_value_function(
                node,
                forward_solution[t],
                iteration=iteration,
                cut_writer=cut_writer,
            )
        self._known.update(record_key(record) for record in records)
        return records

    def _compute_bound(self):
        graph = self.graph
        return float(expected_value(
            graph, graph.first_stage_nodes(), None, graph.initial_price))

    def _SDDP_single(self):
        """A single serial SDDP step. Returns the policy value."""
        # random_state is constructed by number of iteration.
        random_state = numpy.random.RandomState(self.iteration)
        temp = self._forward(random_state)
        self._backward(
            temp['path'], temp['forward_solution'], self.cut_writer)
        return temp['pv']

    def _install_records(self, records, cut_writer=None):
        """Write (if cut_writer is given) and install the records not seen
        before. Return them."""
        fresh = new_cut_records(records, self._known)
        for record in fresh:
            if cut_writer is not None:
                cut_writer.write(*record)
            self.graph.install_cut(*record)
            self._known.add(record_key(record))
        return fresh

    def _rebuild(self):
        for node in self.graph:
            if not node.is_terminal and node.value_function.prunes:
                node.rebuild()

    def solve(
            self,
            max_iterations=10000,
            max_stable_iterations=10000,
            max_time=1000000.0,
            tol=0.001,
            freq_evaluations=None,
            n_simulations=3000,
            percentile=95,
            freq_clean=None,
            n_processes=1,
            cut_file=None,
            random_state=None,
            logFile=1,
            logToConsole=1,
            directory=''):
        """Solve the policy graph.

        Parameters
        ----------
        max_iterations: int, optional (default=10000)
            The maximum number of iterations to run SDDP.

        max_stable_iterations: int, optional (default=10000)
            The maximum number of iterations to have same deterministic bound

        max_time: float, optional (default=1000000)
            The maximum wall-clock time in seconds.

        tol: float, optional (default=1e-3)
            tolerance for convergence of bounds

        freq_evaluations: int, optional (default=None)
            The frequency of evaluating the gap between the bound and the CI
            of the simulated policy value. The algorithm stops once the gap is
            not larger than tol.

        n_simulations: int, optional (default=3000)
            The number of simluations to run when evaluating a policy.

        percentile: float, optional (default=95)
            The percentile used to compute confidence interval

        freq_clean: int, optional (default=None)
            The frequency of rebuilding subproblems whose value functions use
            a pruning cut oracle, so that retired cuts leave the subproblems.

        n_processes: int, optional (default=1)
            The number of asynchronous workers. Run serial SDDP if 1.

        cut_file: string, optional (default=None)
            Append every new cut to this file before it is installed.

        random_state: int, RandomState instance or None, optional (default=None)
            Used in evaluations. (In the forward step, there is an internal
            random_state which is not supposed to be changed.)

        logFile: binary, optional (default=1)
            Switch of logging to log file

        logToConsole: binary, optional (default=1)
            Switch of logging to console

        directory: string, optional (default='')
            Prefix of the log files.

        Examples
        --------
        >>> SDDP(graph).solve(max_iterations=10, max_time=10,
        ...     max_stable_iterations=10)

        Statistical stopping rule: every freq_evaluations iterations simulate
        the policy n_simulations times. If the gap becomes not larger than
        tol, the algorithm will be stopped.

        >>> SDDP(graph).solve(freq_evaluations=10, n_simulations=1000, tol=1e-2)

        Asynchronous SDDP with four workers:

        >>> SDDP(graph).solve(max_iterations=100, n_processes=4)
        """
        self.cut_writer = CutWriter(cut_file) if cut_file is not None else None
        logger_sddp = LoggerSDDP(
            logFile=logFile,
            logToConsole=logToConsole,
            n_processes=n_processes,
            directory=directory,
        )
        logger_sddp.header()
        logger_evaluation = None
        if freq_evaluations is not None:
            logger_evaluation = LoggerEvaluation(
                n_simulations=n_simulations,
                percentile=percentile,
                logFile=logFile,
                logToConsole=logToConsole,
                directory=directory,
            )
            logger_evaluation.header()
        self._stopping = {
            'max_iterations': max_iterations,
            'max_stable_iterations': max_stable_iterations,
            'max_time': max_time,
            'tol': tol,
            'freq_evaluations': freq_evaluations,
            'n_simulations': n_simulations,
            'percentile': percentile,
            'random_state': random_state,
        }
        self._stable_iterations = 0
        self._gap = float("inf")
        try:
            if n_processes == 1:
                self._solve_serial(freq_clean, logger_sddp, logger_evaluation)
            else:
                self._solve_asynchronous(
                    n_processes, freq_clean, logger_sddp, logger_evaluation)
        finally:
            if self.cut_writer is not None:
                self.cut_writer.close()
                self.cut_writer = None
        logger_sddp.footer(reason=self.stop_reason)
        if logger_evaluation is not None:
            logger_evaluation.footer()
        return self

    def _after_iteration(self, pv, elapsed_time, logger_sddp,
            logger_evaluation, worker=None):
        """Bookkeeping after an iteration: bound, logs, evaluations. Return
        True if a stopping rule fires."""
        db = self._compute_bound()
        if self.db and self.db[-1] == db:
            self._stable_iterations += 1
        else:
            self._stable_iterations = 0
        self.db.append(db)
        self.graph.db = db
        self.pv.append(pv)
        self.iteration += 1
        logger_sddp.text(
            iteration=self.iteration,
            db=db,
            pv=pv,
            time=elapsed_time,
            n_cuts=self.graph.n_cuts,
            worker=worker,
        )
        stopping = self._stopping
        if (
            stopping['freq_evaluations'] is not None
            and self.iteration % stopping['freq_evaluations'] == 0
        ):
            start = time.time()
            evaluation = Evaluation(self.graph)
            evaluation.run(
                n_simulations=stopping['n_simulations'],
                percentile=stopping['percentile'],
                random_state=stopping['random_state'],
            )
            self._gap = evaluation.gap
            logger_evaluation.text(
                iteration=self.iteration,
                db=db,
                pv=evaluation.pv[0],
                CI=evaluation.CI,
                gap=evaluation.gap,
                time=time.time() - start,
            )
        return self._check_stopping()

    def _check_stopping(self):
        stopping = self._stopping
        if self.iteration >= stopping['max_iterations']:
            self.stop_reason = "iteration:{} has reached".format(
                stopping['max_iterations'])
        elif self.total_time >= stopping['max_time']:
            self.stop_reason = "time:{} has reached".format(
                stopping['max_time'])
        elif self._stable_iterations >= stopping['max_stable_iterations']:
            self.stop_reason = "stable iteration:{} has reached".format(
                stopping['max_stable_iterations'])
        elif 0 <= self._gap <= stopping['tol']:
            self.stop_reason = "convergence tolerance:{} has reached".format(
                stopping['tol'])
        else:
            return False
        return True

    def _solve_serial(self, freq_clean, logger_sddp, logger_evaluation):
        try:
            while True:
                start = time.time()
                pv = self._SDDP_single()
                elapsed_time = time.time() - start
                self.total_time += elapsed_time
                if self._after_iteration(
                        pv, elapsed_time, logger_sddp, logger_evaluation):
                    break
                if freq_clean is not None and self.iteration % freq_clean == 0:
                    self._rebuild()
        except KeyboardInterrupt:
            self.stop_reason = "interruption by the user"

    def _worker(self, p, results, mailbox, stop, freq_clean):
        """Loop of an asynchronous worker. Each iteration merges the cuts
        found by the other workers, runs a forward and a backward step and
        pushes the new cuts and the policy value. Cuts are tagged with the
        iteration count at fork time plus the iterations of this worker."""
        try:
            i = 0
            base = self.iteration
            while not stop.is_set():
                start = time.time()
                while True:
                    try:
                        self._install_records(mailbox.get_nowait())
                    except queue.Empty:
                        break
                random_state = numpy.random.RandomState([p, i])
                temp = self._forward(random_state)
                records = self._backward(
                    temp["path"], temp["forward_solution"], iteration=base + i)
                i += 1
                if freq_clean is not None and i % freq_clean == 0:
                    self._rebuild()
                results.put((p, temp['pv'], records, time.time() - start))
        except Exception as error:
            # exceptions are reported as text; not all of them pickle
            results.put((
                p,
                None,
                (type(error).__name__, dict(vars(error)),
                    traceback.format_exc()),
                0,
            ))

    def _solve_asynchronous(self, n_processes, freq_clean, logger_sddp,
            logger_evaluation):
        """Asynchronous SDDP. Forked workers own a copy of the policy graph
        and exchange cut records through queues; this process writes and
        installs every record, forwards it to the other workers, computes the
        bound and checks the stopping rules."""
        ctx = multiprocessing.get_context("fork")
        results = ctx.Queue()
        mailboxes = [ctx.Queue() for _ in range(n_processes)]
        stop = ctx.Event()
        procs = [
            ctx.Process(
                target=self._worker,
                args=(p, results, mailboxes[p], stop, freq_clean),
            )
            for p in range(n_processes)
        ]
        for proc in procs:
            proc.start()
        error = None
        start = time.time()
        try:
            while True:
                try:
                    p, pv, records, elapsed_time = results.get(timeout=1)
                except queue.Empty:
                    if not any(proc.is_alive() for proc in procs):
                        error = WorkerError("all workers exited unexpectedly")
                        break
                    continue
                if pv is None:
                    error = worker_exception(p, *records)
                    break
                fresh = self._install_records(records, self.cut_writer)
                if fresh:
                    for q, mailbox in enumerate(mailboxes):
                        if q != p:
                            mailbox.put(fresh)
                self.total_time = time.time() - start
                if self._after_iteration(
                        pv, elapsed_time, logger_sddp, logger_evaluation,
                        worker=p):
                    break
        except KeyboardInterrupt:
            self.stop_reason = "interruption by the user"
        finally:
            stop.set()
            # a worker exits only once its queued results are consumed
            while any(proc.is_alive() for proc in procs):
                try:
                    results.get(timeout=0.1)
                except queue.Empty:
                    pass
            for proc in procs:
                proc.join()
            for mailbox in mailboxes:
                mailbox.cancel_join_thread()
        if error is not None:
            raise error

    @property
    def first_stage_solution(self):
        """the obtained solution of state variables(s) in the first stage"""
        node = self.graph.first_stage_nodes()[0][0]
        return {var.varName: var.X for var in node.model.states}

    @property
    def bounds(self):
        """dataframe of the obtained bound and policy values"""
        return pandas.DataFrame({'db': self.db, 'pv': self.pv})
